"""Turn an accepted bid into a cart line item at the agreed price, at most once."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import AlreadyConsumed, AlreadyInCart, ForbiddenActor, NotAccepted
from .models import Cart, CartItem
from .negotiation import BidSnapshot, BidStatus
from .store import bid_snapshot, flush_or_conflict, get_bid


def get_or_create_cart(db: Session, user_id: uuid.UUID) -> Cart:
    c = db.query(Cart).filter(Cart.user_id == user_id).one_or_none()
    if c is None:
        c = Cart(user_id=user_id)
        db.add(c)
        db.flush()
    return c


def check_materializable(bid: BidSnapshot, user_id: Any) -> None:
    if bid.status is not BidStatus.ACCEPTED:
        raise NotAccepted()
    if bid.bidder_id != user_id:
        raise ForbiddenActor("Only the bidder can add this bid to a cart")
    if bid.consumed_by_cart_item_id is not None:
        raise AlreadyConsumed()


def materialize(db: Session, bid_id: Any, user_id: uuid.UUID) -> CartItem:
    b = get_bid(db, bid_id, for_update=True)
    snap = bid_snapshot(b)
    check_materializable(snap, user_id)

    cart = get_or_create_cart(db, user_id)
    if db.query(CartItem).filter(CartItem.from_bid_id == b.id).first() is not None:
        raise AlreadyConsumed()
    if any(it.listing_id == b.listing_id for it in cart.items):
        raise AlreadyInCart()

    item = CartItem(listing_id=b.listing_id, price_cents=snap.agreed_price_cents, from_bid_id=b.id)
    cart.items.append(item)
    cart.updated_at = datetime.utcnow()
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise AlreadyConsumed()

    b.consumed_by_cart_item_id = item.id
    b.updated_at = datetime.utcnow()
    flush_or_conflict(db)
    return item
