# watchmarket
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, DateTime, Boolean, ForeignKey, Index, UniqueConstraint, Uuid
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def default_uuid():
    return uuid.uuid4()


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    phone = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    listings = relationship("Listing", back_populates="owner")
    bids = relationship("Bid", back_populates="bidder")


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_owner", "owner_user_id"),
        Index("ix_listings_status", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    owner_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    brand = Column(String(64), nullable=False)
    model = Column(String(128), nullable=False)
    reference_number = Column(String(64), nullable=True)
    year = Column(Integer, nullable=True)
    condition = Column(String(32), nullable=True)  # new|unworn|excellent|good|fair
    description = Column(String(4096), nullable=True)
    price_cents = Column(Integer, nullable=True)  # null = price on request
    status = Column(String(16), nullable=False, default="active")  # active|pending|sold
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    owner = relationship("User", back_populates="listings")
    bids = relationship("Bid", back_populates="listing")


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        Index("ix_bids_listing", "listing_id"),
        Index("ix_bids_bidder", "bidder_user_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    listing_id = Column(Uuid(as_uuid=True), ForeignKey("listings.id"), nullable=False)
    bidder_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="offered")  # offered|counter_offered|accepted|rejected|cancelled
    counter_amount_cents = Column(Integer, nullable=True)
    countered_by = Column(String(8), nullable=True)  # seller|buyer
    agreed_price_cents = Column(Integer, nullable=True)
    consumed_by_cart_item_id = Column(Uuid(as_uuid=True), nullable=True)
    revision = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    listing = relationship("Listing", back_populates="bids")
    bidder = relationship("User", back_populates="bids")
    comments = relationship("BidComment", back_populates="bid", order_by="BidComment.created_at")

    __mapper_args__ = {"version_id_col": revision}


class BidComment(Base):
    __tablename__ = "bid_comments"
    __table_args__ = (
        Index("ix_bid_comments_bid", "bid_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    bid_id = Column(Uuid(as_uuid=True), ForeignKey("bids.id"), nullable=False)
    author_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    text = Column(String(2000), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    bid = relationship("Bid", back_populates="comments")


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True)
    delivery_method = Column(String(16), nullable=True)  # shipping|collection
    street = Column(String(256), nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(128), nullable=True)
    postal_code = Column(String(32), nullable=True)
    country = Column(String(64), nullable=True)
    shipping_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    items = relationship("CartItem", back_populates="cart", order_by="CartItem.added_at", cascade="all, delete-orphan")


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("from_bid_id", name="uq_cart_items_from_bid"),
        UniqueConstraint("cart_id", "listing_id", name="uq_cart_items_cart_listing"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    cart_id = Column(Uuid(as_uuid=True), ForeignKey("carts.id"), nullable=False)
    listing_id = Column(Uuid(as_uuid=True), ForeignKey("listings.id"), nullable=False)
    price_cents = Column(Integer, nullable=False)
    from_bid_id = Column(Uuid(as_uuid=True), ForeignKey("bids.id"), nullable=True)
    added_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    cart = relationship("Cart", back_populates="items")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    type = Column(String(32), nullable=False)  # new_bid|counter_offer|bid_accepted|bid_rejected
    title = Column(String(256), nullable=False)
    message = Column(String(1024), nullable=False)
    entity_type = Column(String(16), nullable=False, default="bid")
    entity_id = Column(Uuid(as_uuid=True), nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
