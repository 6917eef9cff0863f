# sellfast/deals.py
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .auth import require_user
from .database import get_db
from .errors import BadRequest, Forbidden, NotFound
from .models import Deal, User, utcnow

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deals", tags=["deals"])


def deal_dict(d: Deal) -> dict:
    data = {
        "id": d.id,
        "seller_id": d.seller_id,
        "buyer_id": d.buyer_id,
        "listing_id": d.listing_id,
        "bid_id": d.bid_id,
        "amount": d.amount,
        "status": d.status,
        "is_success": d.is_success,
        "completed_at": d.completed_at,
        "created_at": d.created_at,
    }
    if d.listing is not None:
        data["listing"] = {"id": d.listing.id, "title": d.listing.title}
    if d.chat is not None:
        data["chat_id"] = d.chat.id
    return data


def complete_deal(
    db: Session,
    deal_id: int,
    acting_user_id: int,
    is_success,
    now: Optional[datetime] = None,
) -> Deal:
    """
    Buyer or seller closes the deal. Calling it again simply re-applies the
    terminal values.
    """
    if not isinstance(is_success, bool):
        raise BadRequest("isSuccess must be a boolean", field="is_success")

    deal = db.get(Deal, deal_id)
    if not deal:
        raise NotFound("Deal not found")
    if acting_user_id not in (deal.buyer_id, deal.seller_id):
        raise Forbidden("You are not part of this deal")

    deal.is_success = is_success
    deal.status = "COMPLETED"
    deal.completed_at = now or utcnow()
    db.commit()
    db.refresh(deal)

    log.info("deal %s completed by user %s (success=%s)", deal.id, acting_user_id, is_success)
    return deal


def list_deals(db: Session, user_id: int) -> list[Deal]:
    return (
        db.query(Deal)
        .filter(or_(Deal.buyer_id == user_id, Deal.seller_id == user_id))
        .order_by(Deal.created_at.desc(), Deal.id.desc())
        .all()
    )


# ===========================================================
# API
# ===========================================================
@router.get("")
def my_deals(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return {"deals": [deal_dict(d) for d in list_deals(db, user.id)]}


@router.post("/{deal_id}/complete")
def complete(
    deal_id: int,
    payload: dict = Body(...),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    is_success = payload.get("is_success", payload.get("isSuccess"))
    deal = complete_deal(db, deal_id, user.id, is_success)
    return {"deal": deal_dict(deal)}
