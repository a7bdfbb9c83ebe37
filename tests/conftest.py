import os


# Point the app at an in-memory database before anything imports settings
os.environ.setdefault("ENV", "dev")
os.environ["DB_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("NOTIFY_MODE", "log")
os.environ.setdefault("ADMIN_TOKEN", "test_admin")
