# watchmarket
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import ForbiddenActor
from ..models import User, Listing
from ..schemas import ListingCreateIn, ListingOut, ListingsListOut, BidsListOut
from ..store import get_listing, bids_for_listing
from .bids import bid_out


router = APIRouter(prefix="/listings", tags=["listings"])


def listing_out(l: Listing) -> ListingOut:
    return ListingOut(
        id=str(l.id),
        owner_user_id=str(l.owner_user_id),
        brand=l.brand,
        model=l.model,
        reference_number=l.reference_number,
        year=l.year,
        condition=l.condition,
        description=l.description,
        price_cents=l.price_cents,
        status=l.status,
    )


@router.post("", response_model=ListingOut, status_code=status.HTTP_201_CREATED)
def create_listing(payload: ListingCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    l = Listing(
        owner_user_id=user.id,
        brand=payload.brand,
        model=payload.model,
        reference_number=payload.reference_number,
        year=payload.year,
        condition=payload.condition,
        description=payload.description,
        price_cents=payload.price_cents,
        status="active",
    )
    db.add(l)
    db.flush()
    return listing_out(l)


@router.get("", response_model=ListingsListOut)
def browse_listings(
    q: str | None = Query(None),
    brand: str | None = Query(None),
    status: str | None = Query("active"),
    min_price: int | None = Query(None),
    max_price: int | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    qry = db.query(Listing)
    conds = []
    if q:
        like = f"%{q}%"
        conds.append(or_(Listing.brand.ilike(like), Listing.model.ilike(like), Listing.reference_number.ilike(like)))
    if brand:
        conds.append(Listing.brand.ilike(brand))
    if status:
        conds.append(Listing.status == status)
    if min_price is not None:
        conds.append(Listing.price_cents >= min_price)
    if max_price is not None:
        conds.append(Listing.price_cents <= max_price)
    if conds:
        qry = qry.filter(and_(*conds))
    rows = qry.order_by(Listing.created_at.desc()).offset(offset).limit(limit).all()
    return ListingsListOut(listings=[listing_out(l) for l in rows])


@router.get("/mine", response_model=ListingsListOut)
def my_listings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = db.query(Listing).filter(Listing.owner_user_id == user.id).order_by(Listing.created_at.desc()).limit(100).all()
    return ListingsListOut(listings=[listing_out(l) for l in rows])


@router.get("/{listing_id}", response_model=ListingOut)
def get_listing_detail(listing_id: str, db: Session = Depends(get_db)):
    return listing_out(get_listing(db, listing_id))


@router.get("/{listing_id}/bids", response_model=BidsListOut)
def listing_bids(listing_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    l = get_listing(db, listing_id)
    if l.owner_user_id != user.id:
        raise ForbiddenActor("Not your listing")
    return BidsListOut(bids=[bid_out(b) for b in bids_for_listing(db, l.id)])
