from fastapi import FastAPI, Response, HTTPException, status, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .config import settings
from .database import engine, get_db
from .errors import AppError, app_error_handler
from .models import Base
from .schemas import TokenOut, RequestOtpIn, VerifyOtpIn
from .auth import ensure_user, make_token, verify_dev_otp
from .middleware_request_id import RequestIDMiddleware
from .routers import admin as admin_router
from .routers import bids as bids_router
from .routers import cart as cart_router
from .routers import listings as listings_router
from .routers import notifications as notifications_router


def create_app() -> FastAPI:
    app = FastAPI(title="Watch Marketplace API", version="0.1.0", docs_url="/docs")

    allowed_origins = settings.ALLOWED_ORIGINS or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        return {"status": "ok", "env": settings.ENV}

    REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
    REQ_DURATION = Histogram(
        "http_request_duration_seconds",
        "HTTP request duration in seconds",
        ["method", "path"],
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
    )

    @app.middleware("http")
    async def _metrics_mw(request, call_next):
        import time
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        route = getattr(request.scope.get("route"), "path", None) or request.url.path
        REQ.labels(request.method, route, str(response.status_code)).inc()
        REQ_DURATION.labels(request.method, route).observe(duration)
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/auth/request_otp")
    def request_otp(payload: RequestOtpIn):
        # DEV: accept any phone, OTP fixed
        return {"detail": "otp_sent"}

    @app.post("/auth/verify_otp", response_model=TokenOut)
    def verify_otp(payload: VerifyOtpIn, db: Session = Depends(get_db)):
        if not verify_dev_otp(payload.phone, payload.otp):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_otp")
        u = ensure_user(db, payload.phone, payload.name)
        return TokenOut(access_token=make_token(str(u.id)))

    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(listings_router.router)
    app.include_router(bids_router.router)
    app.include_router(cart_router.router)
    app.include_router(notifications_router.router)
    app.include_router(admin_router.router)
    return app


app = create_app()
