import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models import Bid
from ..negotiation import BidStatus
from ..schemas import BidOut, BidsListOut, ListingOut, ListingStatusIn
from ..store import get_bid, get_listing
from .bids import bid_out
from .listings import listing_out


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])
log = logging.getLogger("watchmarket.admin")


@router.get("/bids", response_model=BidsListOut)
def list_bids(status: BidStatus | None = Query(None), limit: int = Query(100, ge=1, le=500), db: Session = Depends(get_db)):
    q = db.query(Bid)
    if status is not None:
        q = q.filter(Bid.status == status.value)
    rows = q.order_by(Bid.created_at.desc()).limit(limit).all()
    return BidsListOut(bids=[bid_out(b) for b in rows])


@router.get("/bids/count")
def count_bids(db: Session = Depends(get_db)):
    return {"count": db.query(Bid).count()}


@router.get("/bids/{bid_id}", response_model=BidOut)
def bid_detail(bid_id: str, db: Session = Depends(get_db)):
    return bid_out(get_bid(db, bid_id))


@router.post("/listings/{listing_id}/status", response_model=ListingOut)
def set_listing_status(listing_id: str, payload: ListingStatusIn, db: Session = Depends(get_db)):
    """Hook for the order/payment flow; bids never change listing status themselves."""
    l = get_listing(db, listing_id)
    if l.status != payload.status:
        log.info("listing %s status %s -> %s", l.id, l.status, payload.status)
        l.status = payload.status
        db.flush()
    return listing_out(l)
