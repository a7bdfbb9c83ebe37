import json

from watchmarket.config import settings
from watchmarket.utils import notify as notify_mod


class _FakeRedis:
    def __init__(self, fail: bool = False):
        self.published = []
        self.fail = fail

    def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, message))


def test_redis_mode_publishes(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(settings, "NOTIFY_MODE", "redis")
    monkeypatch.setattr(notify_mod, "_redis_client", lambda: fake)

    notify_mod.notify("bid.created", {"bid_id": "b1", "amount_cents": 8000}, request_id="req-1")

    assert len(fake.published) == 1
    channel, message = fake.published[0]
    assert channel == settings.NOTIFY_REDIS_CHANNEL
    assert json.loads(message) == {"event": "bid.created", "request_id": "req-1", "data": {"bid_id": "b1", "amount_cents": 8000}}


def test_redis_failure_falls_back_to_log(monkeypatch, caplog):
    monkeypatch.setattr(settings, "NOTIFY_MODE", "redis")
    monkeypatch.setattr(notify_mod, "_redis_client", lambda: _FakeRedis(fail=True))

    with caplog.at_level("INFO", logger="watchmarket.utils.notify"):
        notify_mod.notify("bid.status_changed", {"bid_id": "b2"})

    text = caplog.text
    assert "notify(redis) failed" in text
    assert "event=bid.status_changed" in text
