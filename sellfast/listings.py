# sellfast/listings.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .auth import require_user
from .coins import credit
from .database import get_db, unit_of_work
from .errors import BadRequest, Forbidden, NotFound
from .models import Company, Item, Listing, ListingSpecification, Specification, User
from .permissions import LISTINGS_CREATE, has_permission

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["listings"])


def listing_dict(l: Listing, with_bids: bool = False) -> dict:
    data = {
        "id": l.id,
        "user_id": l.user_id,
        "item_id": l.item_id,
        "company_id": l.company_id,
        "title": l.title,
        "description": l.description,
        "price": l.price,
        "address": l.address,
        "latitude": l.latitude,
        "longitude": l.longitude,
        "images": l.images or [],
        "status": l.status,
        "created_at": l.created_at,
        "updated_at": l.updated_at,
        "user": {"id": l.user.id, "name": l.user.name} if l.user else None,
        "item": {"id": l.item.id, "name": l.item.name} if l.item else None,
        "company": {"id": l.company.id, "name": l.company.name} if l.company else None,
        "specifications": [
            {
                "specification_id": s.specification_id,
                "name": s.specification.name if s.specification else None,
                "value": s.value,
            }
            for s in l.specifications
        ],
    }
    if with_bids:
        data["bids"] = [
            {
                "id": b.id,
                "user_id": b.user_id,
                "amount": b.amount,
                "coins_used": b.coins_used,
                "status": b.status,
                "created_at": b.created_at,
            }
            for b in l.bids
        ]
    return data


# ===== Bodies =====
class SpecValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    specification_id: int = Field(alias="specificationId")
    value: str


class ListingBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: Optional[int] = Field(None, alias="itemId")
    company_id: Optional[int] = Field(None, alias="companyId")
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    images: List[str] = Field(default_factory=list)
    specifications: List[SpecValue] = Field(default_factory=list)


# ---------------------------------------------------
# Create
# ---------------------------------------------------
def create_listing(db: Session, user: User, body: ListingBody) -> Listing:
    if not has_permission(user, LISTINGS_CREATE):
        raise Forbidden("You are not allowed to create listings")

    title = (body.title or "").strip()
    description = (body.description or "").strip()
    address = (body.address or "").strip()
    if not body.item_id or not body.company_id or not title or not description or not address:
        raise BadRequest("Missing required fields")
    if body.price is not None and body.price < 0:
        raise BadRequest("Price cannot be negative", field="price")

    if not db.get(Item, body.item_id):
        raise NotFound("Item not found")
    if not db.get(Company, body.company_id):
        raise NotFound("Company not found")

    spec_ids = {s.specification_id for s in body.specifications}
    if spec_ids:
        known = {
            sid for (sid,) in db.query(Specification.id)
            .filter(Specification.id.in_(spec_ids), Specification.item_id == body.item_id)
            .all()
        }
        unknown = spec_ids - known
        if unknown:
            raise BadRequest(f"Unknown specification {min(unknown)} for this item", field="specifications")

    with unit_of_work(db):
        listing = Listing(
            user_id=user.id,
            item_id=body.item_id,
            company_id=body.company_id,
            title=title,
            description=description,
            price=body.price or 0,
            address=address,
            latitude=body.latitude,
            longitude=body.longitude,
            images=body.images or [],
            status="PENDING",
        )
        for pos, s in enumerate(body.specifications):
            listing.specifications.append(
                ListingSpecification(specification_id=s.specification_id, value=s.value, position=pos)
            )
        db.add(listing)
        db.flush()

    log.info("listing %s created by user %s", listing.id, user.id)
    return listing


# ---------------------------------------------------
# Delete (refund open offers, then cascade)
# ---------------------------------------------------
def delete_listing(db: Session, listing_id: int, acting_user: User) -> int:
    """Returns the number of pending offers refunded."""
    listing = db.get(Listing, listing_id)
    if not listing:
        raise NotFound("Listing not found")
    if listing.user_id != acting_user.id and not acting_user.is_admin:
        raise Forbidden("You can only delete your own listings")

    refunded = 0
    with unit_of_work(db):
        for bid in listing.bids:
            if bid.status == "PENDING" and bid.coins_used and bid.coins_used > 0:
                credit(
                    db,
                    bid.user_id,
                    bid.coins_used,
                    "BID_REFUND",
                    f"Refund for offer on removed listing {listing.title}",
                )
                refunded += 1
        db.delete(listing)

    log.info("listing %s deleted by user %s (%s offer(s) refunded)", listing_id, acting_user.id, refunded)
    return refunded


# ===========================================================
# API
# ===========================================================
@router.post("", status_code=201)
def create(body: ListingBody, user: User = Depends(require_user), db: Session = Depends(get_db)):
    listing = create_listing(db, user, body)
    return {"listing": listing_dict(listing)}


@router.get("")
def list_listings(
    status: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    q = db.query(Listing)
    if status:
        q = q.filter(Listing.status == status.upper())
    if user_id:
        q = q.filter(Listing.user_id == user_id)
    rows = q.order_by(Listing.created_at.desc(), Listing.id.desc()).all()
    return {"listings": [listing_dict(l, with_bids=True) for l in rows]}


@router.get("/mine")
def my_listings(user: User = Depends(require_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Listing)
        .filter(Listing.user_id == user.id)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .all()
    )
    return {"listings": [listing_dict(l, with_bids=True) for l in rows]}


@router.get("/{listing_id}")
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    listing = db.get(Listing, listing_id)
    if not listing:
        raise NotFound("Listing not found")
    return {"listing": listing_dict(listing, with_bids=True)}


@router.delete("/{listing_id}")
def delete(listing_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    refunded = delete_listing(db, listing_id, user)
    return {"success": True, "refunded_bids": refunded}
