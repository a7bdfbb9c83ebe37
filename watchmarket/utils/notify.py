import json
import logging
import uuid
from typing import Any, Dict, Optional

import redis
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Notification


log = logging.getLogger(__name__)


def _redis_client() -> redis.Redis | None:
    try:
        return redis.from_url(settings.REDIS_URL) if settings.REDIS_URL else None
    except Exception:
        return None


def notify(event: str, payload: Dict[str, Any], request_id: Optional[str] = None) -> None:
    """Publish a domain event for the UI layer (redis pub/sub or log).

    ``request_id`` ties the event to the HTTP request that caused it.
    """
    mode = getattr(settings, "NOTIFY_MODE", "log")
    if mode == "redis":
        chan = getattr(settings, "NOTIFY_REDIS_CHANNEL", "watchmarket.events")
        cli = _redis_client()
        if cli is None:
            log.warning("notify(redis): no client available; falling back to log")
        else:
            try:
                cli.publish(chan, json.dumps({"event": event, "request_id": request_id, "data": payload}, default=str))
                return
            except Exception as e:
                log.warning("notify(redis) failed: %s", e)
    log.info("event=%s request_id=%s payload=%s", event, request_id, payload)


def notify_user(db: Session, user_id: uuid.UUID, type: str, title: str, message: str, entity_id: uuid.UUID, entity_type: str = "bid") -> Notification:
    n = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    db.add(n)
    return n
