import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from prometheus_client import Counter
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import ForbiddenActor
from ..middleware_request_id import request_id_of
from ..models import User, Bid, Listing
from ..negotiation import Action, apply_action, place_bid
from ..schemas import BidActionIn, BidCommentIn, BidCommentOut, BidCounterIn, BidCreateIn, BidOut, BidsListOut
from ..store import (
    add_comment,
    bid_snapshot,
    bids_for_listing,
    check_revision,
    create_bid,
    get_bid,
    get_listing,
    listing_snapshot,
    update_bid,
)
from ..utils.notify import notify, notify_user


router = APIRouter(prefix="/bids", tags=["bids"])
log = logging.getLogger("watchmarket.bids")

BID_TRANSITIONS = Counter("bid_transitions_total", "Bid state transitions", ["action"])

_NOTIFICATION_TYPES = {
    Action.COUNTER: ("counter_offer", "Counter offer received"),
    Action.ACCEPT: ("bid_accepted", "Offer accepted"),
    Action.REJECT: ("bid_rejected", "Offer declined"),
}


def _money(cents: Optional[int]) -> str:
    return f"{(cents or 0) / 100:,.2f}"


def bid_out(b: Bid) -> BidOut:
    snap = bid_snapshot(b)
    return BidOut(
        id=str(b.id),
        listing_id=str(b.listing_id),
        bidder_user_id=str(b.bidder_user_id),
        amount_cents=b.amount_cents,
        status=b.status,
        counter_amount_cents=b.counter_amount_cents,
        countered_by=b.countered_by,
        awaiting=snap.responder.value if snap.responder else None,
        agreed_price_cents=b.agreed_price_cents,
        consumed_by_cart_item_id=str(b.consumed_by_cart_item_id) if b.consumed_by_cart_item_id else None,
        revision=b.revision,
        created_at=b.created_at,
        updated_at=b.updated_at,
        comments=[BidCommentOut(author_user_id=str(c.author_user_id), text=c.text, created_at=c.created_at) for c in b.comments],
    )


def _ensure_party(b: Bid, l: Listing, user: User) -> None:
    if user.id not in (b.bidder_user_id, l.owner_user_id):
        raise ForbiddenActor("Not your bid")


@router.post("", response_model=BidOut, status_code=status.HTTP_201_CREATED)
def create(payload: BidCreateIn, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    l = get_listing(db, payload.listing_id)
    existing = [bid_snapshot(b) for b in bids_for_listing(db, l.id, bidder_user_id=user.id)]
    snap = place_bid(listing_snapshot(l), user.id, payload.amount_cents, existing_bids=existing)
    b = create_bid(db, snap)
    add_comment(db, b, user.id, payload.comment)
    notify_user(
        db,
        l.owner_user_id,
        "new_bid",
        "New offer received",
        f"New offer of {_money(b.amount_cents)} on your {l.brand} {l.model}",
        b.id,
    )
    db.flush()
    BID_TRANSITIONS.labels("place_bid").inc()
    notify("bid.created", {"bid_id": str(b.id), "listing_id": str(l.id), "bidder_user_id": str(user.id), "amount_cents": b.amount_cents}, request_id_of(request))
    return bid_out(b)


@router.get("", response_model=BidsListOut)
def my_bids(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = db.query(Bid).filter(Bid.bidder_user_id == user.id).order_by(Bid.created_at.desc()).limit(100).all()
    return BidsListOut(bids=[bid_out(b) for b in rows])


@router.get("/received", response_model=BidsListOut)
def received_bids(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Bids on any of the caller's listings, newest first."""
    rows = (
        db.query(Bid)
        .join(Listing, Bid.listing_id == Listing.id)
        .filter(Listing.owner_user_id == user.id)
        .order_by(Bid.created_at.desc())
        .limit(100)
        .all()
    )
    return BidsListOut(bids=[bid_out(b) for b in rows])


@router.get("/{bid_id}", response_model=BidOut)
def get_one(bid_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    b = get_bid(db, bid_id)
    _ensure_party(b, db.get(Listing, b.listing_id), user)
    return bid_out(b)


def _transition(
    request: Request,
    db: Session,
    bid_id: str,
    user: User,
    action: Action,
    amount_cents: Optional[int] = None,
    comment: Optional[str] = None,
    revision: Optional[int] = None,
) -> Bid:
    b = get_bid(db, bid_id, for_update=True)
    l = db.get(Listing, b.listing_id)
    check_revision(b, revision)
    before = bid_snapshot(b)
    after = apply_action(before, listing_snapshot(l), action, user.id, amount_cents)
    update_bid(db, b, before, after)
    add_comment(db, b, user.id, comment)

    counterpart = l.owner_user_id if user.id == b.bidder_user_id else b.bidder_user_id
    if action in _NOTIFICATION_TYPES:
        ntype, title = _NOTIFICATION_TYPES[action]
        if action is Action.COUNTER:
            message = f"Counter offer of {_money(after.counter_amount_cents)} on {l.brand} {l.model}"
        elif action is Action.ACCEPT:
            message = f"Offer on {l.brand} {l.model} accepted at {_money(after.agreed_price_cents)}"
        else:
            message = f"Offer on {l.brand} {l.model} was declined"
        notify_user(db, counterpart, ntype, title, message, b.id)
        db.flush()

    BID_TRANSITIONS.labels(action.value).inc()
    log.info("bid %s %s -> %s by %s", b.id, before.status.value, after.status.value, user.id)
    notify(
        "bid.status_changed",
        {
            "bid_id": str(b.id),
            "listing_id": str(b.listing_id),
            "action": action.value,
            "from": before.status.value,
            "to": after.status.value,
            "actor_user_id": str(user.id),
        },
        request_id_of(request),
    )
    return b


@router.post("/{bid_id}/counter", response_model=BidOut)
def counter(bid_id: str, request: Request, payload: BidCounterIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    b = _transition(request, db, bid_id, user, Action.COUNTER, payload.amount_cents, payload.comment, payload.revision)
    return bid_out(b)


@router.post("/{bid_id}/accept", response_model=BidOut)
def accept(bid_id: str, request: Request, payload: Optional[BidActionIn] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payload = payload or BidActionIn()
    b = _transition(request, db, bid_id, user, Action.ACCEPT, comment=payload.comment, revision=payload.revision)
    return bid_out(b)


@router.post("/{bid_id}/reject", response_model=BidOut)
def reject(bid_id: str, request: Request, payload: Optional[BidActionIn] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payload = payload or BidActionIn()
    b = _transition(request, db, bid_id, user, Action.REJECT, comment=payload.comment, revision=payload.revision)
    return bid_out(b)


@router.post("/{bid_id}/cancel", response_model=BidOut)
def cancel(bid_id: str, request: Request, payload: Optional[BidActionIn] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payload = payload or BidActionIn()
    b = _transition(request, db, bid_id, user, Action.CANCEL, comment=payload.comment, revision=payload.revision)
    return bid_out(b)


@router.post("/{bid_id}/comments", response_model=BidOut)
def comment(bid_id: str, payload: BidCommentIn, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    b = get_bid(db, bid_id)
    _ensure_party(b, db.get(Listing, b.listing_id), user)
    add_comment(db, b, user.id, payload.text)
    notify("bid.comment_added", {"bid_id": str(b.id), "author_user_id": str(user.id)}, request_id_of(request))
    return bid_out(b)
