"""Bid negotiation state machine.

Pure decision logic: every function takes immutable snapshots and either
returns a new snapshot or raises one of the errors in ``watchmarket.errors``.
Nothing here touches the database, so the routers own persistence and
side effects (comments, notifications, events).

    offered --counter(seller)--> counter_offered --counter(buyer)--> counter_offered ...
    offered --accept/reject(seller)--> accepted | rejected
    counter_offered --accept/reject(responder)--> accepted | rejected
    offered | counter_offered --cancel(buyer)--> cancelled

In ``counter_offered`` the responder is whichever party did not make the
latest counter, so counters alternate between seller and buyer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional

from .errors import (
    DuplicateActiveBid,
    ForbiddenActor,
    InvalidAmount,
    InvalidTransition,
    ListingNotAvailable,
    NoOpTransition,
)


class BidStatus(str, enum.Enum):
    OFFERED = "offered"
    COUNTER_OFFERED = "counter_offered"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ListingStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SOLD = "sold"


class Action(str, enum.Enum):
    COUNTER = "counter"
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"


class Party(str, enum.Enum):
    SELLER = "seller"
    BUYER = "buyer"

    @property
    def other(self) -> "Party":
        return Party.BUYER if self is Party.SELLER else Party.SELLER


TERMINAL_STATUSES = frozenset({BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.CANCELLED})
# A buyer holding a bid in one of these may not open another on the same listing
LIVE_STATUSES = frozenset({BidStatus.OFFERED, BidStatus.COUNTER_OFFERED, BidStatus.ACCEPTED})

_TRANSITIONS: dict[tuple[BidStatus, Action], BidStatus] = {
    (BidStatus.OFFERED, Action.COUNTER): BidStatus.COUNTER_OFFERED,
    (BidStatus.OFFERED, Action.ACCEPT): BidStatus.ACCEPTED,
    (BidStatus.OFFERED, Action.REJECT): BidStatus.REJECTED,
    (BidStatus.OFFERED, Action.CANCEL): BidStatus.CANCELLED,
    (BidStatus.COUNTER_OFFERED, Action.COUNTER): BidStatus.COUNTER_OFFERED,
    (BidStatus.COUNTER_OFFERED, Action.ACCEPT): BidStatus.ACCEPTED,
    (BidStatus.COUNTER_OFFERED, Action.REJECT): BidStatus.REJECTED,
    (BidStatus.COUNTER_OFFERED, Action.CANCEL): BidStatus.CANCELLED,
}


@dataclass(frozen=True)
class ListingSnapshot:
    id: Any
    owner_id: Any
    status: ListingStatus = ListingStatus.ACTIVE
    price_cents: Optional[int] = None


@dataclass(frozen=True)
class BidSnapshot:
    id: Any
    listing_id: Any
    bidder_id: Any
    amount_cents: int
    status: BidStatus = BidStatus.OFFERED
    counter_amount_cents: Optional[int] = None
    countered_by: Optional[Party] = None
    agreed_price_cents: Optional[int] = None
    consumed_by_cart_item_id: Any = None

    @property
    def standing_amount_cents(self) -> int:
        """Amount currently on the table: latest counter, else the original bid."""
        if self.counter_amount_cents is not None:
            return self.counter_amount_cents
        return self.amount_cents

    @property
    def responder(self) -> Optional[Party]:
        """Party expected to answer next, or None once the negotiation is over."""
        if self.status is BidStatus.OFFERED:
            return Party.SELLER
        if self.status is BidStatus.COUNTER_OFFERED:
            return (self.countered_by or Party.SELLER).other
        return None

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES


def party_of(actor_id: Any, bid: BidSnapshot, listing: ListingSnapshot) -> Optional[Party]:
    if actor_id == bid.bidder_id:
        return Party.BUYER
    if actor_id == listing.owner_id:
        return Party.SELLER
    return None


def _check_amount(amount_cents: Any) -> int:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise InvalidAmount("Amount must be a positive number of cents")
    return amount_cents


def place_bid(
    listing: ListingSnapshot,
    bidder_id: Any,
    amount_cents: int,
    existing_bids: Iterable[BidSnapshot] = (),
    bid_id: Any = None,
) -> BidSnapshot:
    """Open a new negotiation in ``offered``.

    ``existing_bids`` may hold any bids on the listing; only the bidder's own
    live ones count against them.
    """
    if listing.status is not ListingStatus.ACTIVE:
        raise ListingNotAvailable(f"Listing is {listing.status.value}")
    if bidder_id == listing.owner_id:
        raise ForbiddenActor("Cannot bid on your own listing")
    _check_amount(amount_cents)
    if listing.price_cents is not None and amount_cents >= listing.price_cents:
        raise InvalidAmount("Bid must be below the list price; use Buy Now instead")
    for other in existing_bids:
        if other.bidder_id == bidder_id and other.listing_id == listing.id and other.is_live:
            raise DuplicateActiveBid()
    return BidSnapshot(
        id=bid_id,
        listing_id=listing.id,
        bidder_id=bidder_id,
        amount_cents=amount_cents,
    )


def required_party(bid: BidSnapshot, action: Action) -> Party:
    if action is Action.CANCEL:
        return Party.BUYER
    return bid.responder or Party.SELLER


def apply_action(
    bid: BidSnapshot,
    listing: ListingSnapshot,
    action: Action,
    actor_id: Any,
    amount_cents: Optional[int] = None,
) -> BidSnapshot:
    """Validate ``action`` by ``actor_id`` against ``bid`` and return the next snapshot."""
    action = Action(action)
    target = _TRANSITIONS.get((bid.status, action))
    if target is None:
        raise InvalidTransition(bid.status.value, action.value)

    party = party_of(actor_id, bid, listing)
    if party is None or party is not required_party(bid, action):
        raise ForbiddenActor(f"Only the {required_party(bid, action).value} may {action.value} now")

    if action is Action.COUNTER:
        amount = _check_amount(amount_cents)
        if amount == bid.standing_amount_cents:
            raise NoOpTransition()
        return replace(bid, status=target, counter_amount_cents=amount, countered_by=party)
    if action is Action.ACCEPT:
        return replace(bid, status=target, agreed_price_cents=bid.standing_amount_cents)
    return replace(bid, status=target)
