from datetime import datetime
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import settings
from ..database import get_db
from ..errors import AlreadyInCart, CartFull, InvalidAmount, ListingNotAvailable, NotFound
from ..materializer import get_or_create_cart, materialize
from ..middleware_request_id import request_id_of
from ..models import User, Cart, CartItem, Listing
from ..schemas import AddCartItemIn, AddFromBidIn, CartItemOut, CartOut, DeliveryIn
from ..store import get_listing, parse_id
from ..utils.notify import notify


router = APIRouter(prefix="/cart", tags=["cart"])


def _item_out(db: Session, it: CartItem) -> CartItemOut:
    l = db.get(Listing, it.listing_id)
    return CartItemOut(
        id=str(it.id),
        listing_id=str(it.listing_id),
        brand=l.brand if l else "",
        model=l.model if l else "",
        price_cents=it.price_cents,
        from_bid_id=str(it.from_bid_id) if it.from_bid_id else None,
        added_at=it.added_at,
    )


def _to_cart_out(db: Session, c: Cart) -> CartOut:
    items = [_item_out(db, it) for it in c.items]
    subtotal = sum(it.price_cents for it in items)
    shipping = c.shipping_cents if items else 0
    return CartOut(
        id=str(c.id),
        items=items,
        delivery_method=c.delivery_method,
        street=c.street,
        city=c.city,
        state=c.state,
        postal_code=c.postal_code,
        country=c.country,
        subtotal_cents=subtotal,
        shipping_cents=shipping,
        total_cents=subtotal + shipping,
    )


@router.get("", response_model=CartOut)
def get_cart(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = get_or_create_cart(db, user.id)
    return _to_cart_out(db, c)


@router.post("/items", response_model=CartOut)
def add_item(payload: AddCartItemIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Buy Now: add a listing at its list price."""
    l = get_listing(db, payload.listing_id)
    if l.status != "active":
        raise ListingNotAvailable(f"Listing is {l.status}")
    if l.price_cents is None:
        raise InvalidAmount("Listing is price on request; place a bid instead")
    c = get_or_create_cart(db, user.id)
    if any(it.listing_id == l.id for it in c.items):
        raise AlreadyInCart()
    if len(c.items) >= settings.CART_MAX_ITEMS:
        raise CartFull(f"Cart holds at most {settings.CART_MAX_ITEMS} items")
    c.items.append(CartItem(listing_id=l.id, price_cents=l.price_cents))
    c.updated_at = datetime.utcnow()
    db.flush()
    return _to_cart_out(db, c)


@router.post("/add-from-bid", response_model=CartItemOut)
def add_from_bid(payload: AddFromBidIn, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = materialize(db, payload.bid_id, user.id)
    notify(
        "cart.item_added_from_bid",
        {"bid_id": str(item.from_bid_id), "cart_item_id": str(item.id), "listing_id": str(item.listing_id), "price_cents": item.price_cents},
        request_id_of(request),
    )
    return _item_out(db, item)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = get_or_create_cart(db, user.id)
    it = db.get(CartItem, parse_id(item_id, "Item"))
    if it is None or it.cart_id != c.id:
        raise NotFound("Item not found")
    c.items.remove(it)
    db.delete(it)
    c.updated_at = datetime.utcnow()
    db.flush()
    return _to_cart_out(db, c)


@router.put("/delivery", response_model=CartOut)
def update_delivery(payload: DeliveryIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = get_or_create_cart(db, user.id)
    for field in ("street", "city", "state", "postal_code", "country"):
        value = getattr(payload, field)
        if value is not None:
            setattr(c, field, value)
    if payload.delivery_method:
        c.delivery_method = payload.delivery_method
        c.shipping_cents = settings.SHIPPING_FLAT_CENTS if payload.delivery_method == "shipping" else 0
    c.updated_at = datetime.utcnow()
    db.flush()
    return _to_cart_out(db, c)


@router.post("/clear")
def clear_cart(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = get_or_create_cart(db, user.id)
    for it in list(c.items):
        c.items.remove(it)
        db.delete(it)
    c.delivery_method = None
    c.shipping_cents = 0
    c.updated_at = datetime.utcnow()
    db.flush()
    return {"detail": "cleared"}
