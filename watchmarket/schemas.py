# watchmarket
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RequestOtpIn(BaseModel):
    phone: str


class VerifyOtpIn(BaseModel):
    phone: str
    otp: str
    name: Optional[str] = None


class ListingCreateIn(BaseModel):
    brand: str = Field(min_length=1, max_length=64)
    model: str = Field(min_length=1, max_length=128)
    reference_number: Optional[str] = None
    year: Optional[int] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    price_cents: Optional[int] = Field(default=None, gt=0)


class ListingOut(BaseModel):
    id: str
    owner_user_id: str
    brand: str
    model: str
    reference_number: Optional[str] = None
    year: Optional[int] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    price_cents: Optional[int] = None
    status: str


class ListingsListOut(BaseModel):
    listings: List[ListingOut]


class ListingStatusIn(BaseModel):
    status: str = Field(pattern="^(active|pending|sold)$")


class BidCreateIn(BaseModel):
    listing_id: str
    amount_cents: int
    comment: Optional[str] = Field(default=None, max_length=2000)


class BidCounterIn(BaseModel):
    amount_cents: int
    comment: Optional[str] = Field(default=None, max_length=2000)
    revision: Optional[int] = None


class BidActionIn(BaseModel):
    comment: Optional[str] = Field(default=None, max_length=2000)
    revision: Optional[int] = None


class BidCommentIn(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class BidCommentOut(BaseModel):
    author_user_id: str
    text: str
    created_at: datetime


class BidOut(BaseModel):
    id: str
    listing_id: str
    bidder_user_id: str
    amount_cents: int
    status: str
    counter_amount_cents: Optional[int] = None
    countered_by: Optional[str] = None
    awaiting: Optional[str] = None
    agreed_price_cents: Optional[int] = None
    consumed_by_cart_item_id: Optional[str] = None
    revision: int
    created_at: datetime
    updated_at: datetime
    comments: List[BidCommentOut] = []


class BidsListOut(BaseModel):
    bids: List[BidOut]


class AddCartItemIn(BaseModel):
    listing_id: str


class AddFromBidIn(BaseModel):
    bid_id: str


class CartItemOut(BaseModel):
    id: str
    listing_id: str
    brand: str = ""
    model: str = ""
    price_cents: int
    from_bid_id: Optional[str] = None
    added_at: datetime


class DeliveryIn(BaseModel):
    delivery_method: Optional[str] = Field(default=None, pattern="^(shipping|collection)$")
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class CartOut(BaseModel):
    id: str
    items: List[CartItemOut]
    delivery_method: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    subtotal_cents: int
    shipping_cents: int
    total_cents: int


class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    entity_type: str
    entity_id: str
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationsListOut(BaseModel):
    notifications: List[NotificationOut]


class UnreadCountOut(BaseModel):
    unread: int


class RecentNotificationsOut(BaseModel):
    notifications: List[NotificationOut]
    unread_count: int
