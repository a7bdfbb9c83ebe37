"""Persistence seam between the ORM rows and the negotiation snapshots."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .errors import Conflict, NotFound
from .models import Bid, BidComment, Listing
from .negotiation import BidSnapshot, BidStatus, ListingSnapshot, ListingStatus, Party


def parse_id(value: Any, what: str = "Resource") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(f"{what} not found")


def listing_snapshot(l: Listing) -> ListingSnapshot:
    return ListingSnapshot(
        id=l.id,
        owner_id=l.owner_user_id,
        status=ListingStatus(l.status),
        price_cents=l.price_cents,
    )


def bid_snapshot(b: Bid) -> BidSnapshot:
    return BidSnapshot(
        id=b.id,
        listing_id=b.listing_id,
        bidder_id=b.bidder_user_id,
        amount_cents=b.amount_cents,
        status=BidStatus(b.status),
        counter_amount_cents=b.counter_amount_cents,
        countered_by=Party(b.countered_by) if b.countered_by else None,
        agreed_price_cents=b.agreed_price_cents,
        consumed_by_cart_item_id=b.consumed_by_cart_item_id,
    )


def get_listing(db: Session, listing_id: Any) -> Listing:
    l = db.get(Listing, parse_id(listing_id, "Listing"))
    if l is None:
        raise NotFound("Listing not found")
    return l


def get_bid(db: Session, bid_id: Any, for_update: bool = False) -> Bid:
    stmt = select(Bid).where(Bid.id == parse_id(bid_id, "Bid"))
    if for_update:
        stmt = stmt.with_for_update()
    b = db.execute(stmt).scalars().first()
    if b is None:
        raise NotFound("Bid not found")
    return b


def bids_for_listing(db: Session, listing_id: uuid.UUID, bidder_user_id: Optional[uuid.UUID] = None) -> list[Bid]:
    q = db.query(Bid).filter(Bid.listing_id == listing_id)
    if bidder_user_id is not None:
        q = q.filter(Bid.bidder_user_id == bidder_user_id)
    return q.order_by(Bid.created_at.desc()).all()


def create_bid(db: Session, snap: BidSnapshot) -> Bid:
    b = Bid(
        listing_id=snap.listing_id,
        bidder_user_id=snap.bidder_id,
        amount_cents=snap.amount_cents,
        status=snap.status.value,
    )
    db.add(b)
    db.flush()
    return b


def check_revision(b: Bid, expected_revision: Optional[int]) -> None:
    if expected_revision is not None and expected_revision != b.revision:
        raise Conflict(f"Bid is at revision {b.revision}, not {expected_revision}")


def update_bid(db: Session, b: Bid, previous: BidSnapshot, new: BidSnapshot, expected_revision: Optional[int] = None) -> Bid:
    """Write ``new`` onto ``b`` if the row still matches ``previous``.

    The row's ``revision`` is the mapper's version column, so a concurrent
    writer that committed first makes the flush fail with ``Conflict``.
    """
    check_revision(b, expected_revision)
    if b.status != previous.status.value:
        raise Conflict()
    b.status = new.status.value
    b.counter_amount_cents = new.counter_amount_cents
    b.countered_by = new.countered_by.value if new.countered_by else None
    b.agreed_price_cents = new.agreed_price_cents
    b.consumed_by_cart_item_id = new.consumed_by_cart_item_id
    b.updated_at = datetime.utcnow()
    flush_or_conflict(db)
    return b


def flush_or_conflict(db: Session) -> None:
    try:
        db.flush()
    except StaleDataError:
        db.rollback()
        raise Conflict()


def add_comment(db: Session, b: Bid, author_user_id: uuid.UUID, text: Optional[str]) -> Optional[BidComment]:
    text = (text or "").strip()
    if not text:
        return None
    c = BidComment(author_user_id=author_user_id, text=text[:2000])
    b.comments.append(c)
    db.flush()
    return c
