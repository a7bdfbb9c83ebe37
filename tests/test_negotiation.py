from dataclasses import replace

import pytest

from watchmarket.errors import (
    DuplicateActiveBid,
    ForbiddenActor,
    InvalidAmount,
    InvalidTransition,
    ListingNotAvailable,
    NoOpTransition,
)
from watchmarket.negotiation import (
    TERMINAL_STATUSES,
    Action,
    BidSnapshot,
    BidStatus,
    ListingSnapshot,
    ListingStatus,
    Party,
    apply_action,
    place_bid,
)


SELLER = "seller-1"
BUYER = "buyer-1"
STRANGER = "someone-else"

LISTING = ListingSnapshot(id="listing-1", owner_id=SELLER, status=ListingStatus.ACTIVE, price_cents=10000)


def _offered(**kw) -> BidSnapshot:
    base = BidSnapshot(id="bid-1", listing_id=LISTING.id, bidder_id=BUYER, amount_cents=8000)
    return replace(base, **kw)


def _seller_countered() -> BidSnapshot:
    return _offered(status=BidStatus.COUNTER_OFFERED, counter_amount_cents=9000, countered_by=Party.SELLER)


# place_bid

def test_place_bid_opens_offered():
    bid = place_bid(LISTING, BUYER, 8000)
    assert bid.status is BidStatus.OFFERED
    assert bid.amount_cents == 8000
    assert bid.agreed_price_cents is None
    assert bid.consumed_by_cart_item_id is None
    assert bid.responder is Party.SELLER


def test_place_bid_at_list_price_is_rejected():
    with pytest.raises(InvalidAmount):
        place_bid(LISTING, BUYER, 10000)


def test_place_bid_one_cent_below_list_price_is_accepted():
    assert place_bid(LISTING, BUYER, 9999).status is BidStatus.OFFERED


def test_place_bid_without_list_price_has_no_ceiling():
    on_request = replace(LISTING, price_cents=None)
    assert place_bid(on_request, BUYER, 5_000_000).amount_cents == 5_000_000


@pytest.mark.parametrize("amount", [0, -1, True, 12.5, None])
def test_place_bid_rejects_non_positive_or_non_integer_amounts(amount):
    with pytest.raises(InvalidAmount):
        place_bid(LISTING, BUYER, amount)


@pytest.mark.parametrize("status", [ListingStatus.PENDING, ListingStatus.SOLD])
def test_place_bid_on_unavailable_listing(status):
    with pytest.raises(ListingNotAvailable):
        place_bid(replace(LISTING, status=status), BUYER, 8000)


def test_owner_cannot_bid_on_own_listing():
    with pytest.raises(ForbiddenActor):
        place_bid(LISTING, SELLER, 8000)


@pytest.mark.parametrize("status", [BidStatus.OFFERED, BidStatus.COUNTER_OFFERED, BidStatus.ACCEPTED])
def test_place_bid_rejects_second_live_bid(status):
    with pytest.raises(DuplicateActiveBid):
        place_bid(LISTING, BUYER, 7000, existing_bids=[_offered(status=status)])


@pytest.mark.parametrize("status", [BidStatus.REJECTED, BidStatus.CANCELLED])
def test_place_bid_allows_new_bid_after_closed_one(status):
    assert place_bid(LISTING, BUYER, 7000, existing_bids=[_offered(status=status)]).status is BidStatus.OFFERED


def test_other_buyers_bids_do_not_block():
    other = _offered(bidder_id="buyer-2")
    assert place_bid(LISTING, BUYER, 7000, existing_bids=[other]).status is BidStatus.OFFERED


# valid transitions

@pytest.mark.parametrize(
    "before, action, actor, amount, expected",
    [
        (_offered(), Action.COUNTER, SELLER, 9000,
         _offered(status=BidStatus.COUNTER_OFFERED, counter_amount_cents=9000, countered_by=Party.SELLER)),
        (_offered(), Action.ACCEPT, SELLER, None,
         _offered(status=BidStatus.ACCEPTED, agreed_price_cents=8000)),
        (_offered(), Action.REJECT, SELLER, None, _offered(status=BidStatus.REJECTED)),
        (_offered(), Action.CANCEL, BUYER, None, _offered(status=BidStatus.CANCELLED)),
        (_seller_countered(), Action.ACCEPT, BUYER, None,
         replace(_seller_countered(), status=BidStatus.ACCEPTED, agreed_price_cents=9000)),
        (_seller_countered(), Action.REJECT, BUYER, None,
         replace(_seller_countered(), status=BidStatus.REJECTED)),
        (_seller_countered(), Action.COUNTER, BUYER, 8500,
         replace(_seller_countered(), counter_amount_cents=8500, countered_by=Party.BUYER)),
        (_seller_countered(), Action.CANCEL, BUYER, None,
         replace(_seller_countered(), status=BidStatus.CANCELLED)),
    ],
)
def test_valid_transitions(before, action, actor, amount, expected):
    frozen = replace(before)
    after = apply_action(before, LISTING, action, actor, amount)
    assert after == expected
    assert before == frozen


def test_counters_alternate_between_parties():
    bid = apply_action(_offered(), LISTING, Action.COUNTER, SELLER, 9500)
    assert bid.responder is Party.BUYER
    bid = apply_action(bid, LISTING, Action.COUNTER, BUYER, 8800)
    assert bid.responder is Party.SELLER
    with pytest.raises(ForbiddenActor):
        apply_action(bid, LISTING, Action.ACCEPT, BUYER)
    bid = apply_action(bid, LISTING, Action.ACCEPT, SELLER)
    assert bid.status is BidStatus.ACCEPTED
    assert bid.agreed_price_cents == 8800
    assert bid.responder is None


def test_action_accepts_plain_string():
    assert apply_action(_offered(), LISTING, "reject", SELLER).status is BidStatus.REJECTED


# invalid transitions

@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("actor", [SELLER, BUYER, STRANGER])
def test_terminal_states_reject_everything(status, action, actor):
    before = _offered(status=status, agreed_price_cents=8000 if status is BidStatus.ACCEPTED else None)
    with pytest.raises(InvalidTransition) as exc:
        apply_action(before, LISTING, action, actor, 7000)
    assert status.value in str(exc.value)
    assert action.value in str(exc.value)


@pytest.mark.parametrize(
    "before, action, actor",
    [
        (_offered(), Action.ACCEPT, BUYER),
        (_offered(), Action.REJECT, BUYER),
        (_offered(), Action.COUNTER, BUYER),
        (_offered(), Action.CANCEL, SELLER),
        (_offered(), Action.ACCEPT, STRANGER),
        (_seller_countered(), Action.ACCEPT, SELLER),
        (_seller_countered(), Action.REJECT, SELLER),
        (_seller_countered(), Action.COUNTER, SELLER),
        (_seller_countered(), Action.CANCEL, SELLER),
        (_seller_countered(), Action.CANCEL, STRANGER),
    ],
)
def test_wrong_actor_is_forbidden(before, action, actor):
    frozen = replace(before)
    with pytest.raises(ForbiddenActor):
        apply_action(before, LISTING, action, actor, 8700)
    assert before == frozen


def test_counter_with_same_amount_is_noop():
    with pytest.raises(NoOpTransition):
        apply_action(_seller_countered(), LISTING, Action.COUNTER, BUYER, 9000)
    with pytest.raises(NoOpTransition):
        apply_action(_offered(), LISTING, Action.COUNTER, SELLER, 8000)


@pytest.mark.parametrize("amount", [0, -100, None])
def test_counter_needs_positive_amount(amount):
    with pytest.raises(InvalidAmount):
        apply_action(_offered(), LISTING, Action.COUNTER, SELLER, amount)


def test_accepting_one_bid_leaves_siblings_alone():
    sibling = _offered(id="bid-2", bidder_id="buyer-2", amount_cents=7500)
    apply_action(_offered(), LISTING, Action.ACCEPT, SELLER)
    assert sibling.status is BidStatus.OFFERED
    assert apply_action(sibling, LISTING, Action.REJECT, SELLER).status is BidStatus.REJECTED
