from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import NotFound
from ..models import User, Notification
from ..schemas import NotificationOut, NotificationsListOut, RecentNotificationsOut, UnreadCountOut
from ..store import parse_id


router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=str(n.id),
        type=n.type,
        title=n.title,
        message=n.message,
        entity_type=n.entity_type,
        entity_id=str(n.entity_id),
        read=n.read,
        read_at=n.read_at,
        created_at=n.created_at,
    )


@router.get("", response_model=NotificationsListOut)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    rows = q.order_by(Notification.created_at.desc()).limit(limit).all()
    return NotificationsListOut(notifications=[_to_out(n) for n in rows])


def _unread(db: Session, user: User) -> int:
    return db.query(Notification).filter(Notification.user_id == user.id, Notification.read.is_(False)).count()


@router.get("/unread_count", response_model=UnreadCountOut)
def unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return UnreadCountOut(unread=_unread(db, user))


@router.get("/recent", response_model=RecentNotificationsOut)
def recent(
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Latest few notifications plus the unread badge count, for a header dropdown."""
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .all()
    )
    return RecentNotificationsOut(notifications=[_to_out(n) for n in rows], unread_count=_unread(db, user))


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    n = db.get(Notification, parse_id(notification_id, "Notification"))
    if n is None or n.user_id != user.id:
        raise NotFound("Notification not found")
    if not n.read:
        n.read = True
        n.read_at = datetime.utcnow()
        db.flush()
    return _to_out(n)


@router.post("/read_all", response_model=UnreadCountOut)
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    now = datetime.utcnow()
    for n in db.query(Notification).filter(Notification.user_id == user.id, Notification.read.is_(False)).all():
        n.read = True
        n.read_at = now
    db.flush()
    return UnreadCountOut(unread=0)


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    n = db.get(Notification, parse_id(notification_id, "Notification"))
    if n is None or n.user_id != user.id:
        raise NotFound("Notification not found")
    db.delete(n)
    db.flush()
    return {"detail": "deleted"}
