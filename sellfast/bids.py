# sellfast/bids.py
from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .auth import require_user
from .chats import chat_dict
from .coins import credit, debit
from .database import get_db, unit_of_work
from .deals import deal_dict
from .errors import BadRequest, Expired, Forbidden, Internal, InvalidState, NotFound
from .models import Bid, Chat, Deal, Listing, User, utcnow
from .permissions import BIDS_CREATE, has_permission

log = logging.getLogger(__name__)

# How long an offer stays open
BID_EXPIRY_HOURS = int(os.getenv("BID_EXPIRY_HOURS", "48"))

router = APIRouter(prefix="/api/bids", tags=["bids"])


def bid_dict(b: Bid, with_user: bool = True) -> dict:
    data = {
        "id": b.id,
        "listing_id": b.listing_id,
        "user_id": b.user_id,
        "amount": b.amount,
        "coins_used": b.coins_used,
        "message": b.message,
        "status": b.status,
        "expires_at": b.expires_at,
        "accepted_at": b.accepted_at,
        "rejected_at": b.rejected_at,
        "created_at": b.created_at,
    }
    if with_user and b.user is not None:
        data["user"] = {"id": b.user.id, "name": b.user.name}
    if b.listing is not None:
        data["listing"] = {"id": b.listing.id, "title": b.listing.title}
    return data


def _lock_listing(db: Session, listing_id: int) -> Listing:
    """Re-read the listing with FOR UPDATE; every bid write on a listing goes through here."""
    return (
        db.query(Listing)
        .filter(Listing.id == listing_id)
        .with_for_update()
        .populate_existing()
        .one()
    )


# ---------------------------------------------------
# Place an offer (escrows coins)
# ---------------------------------------------------
def place_bid(
    db: Session,
    user: User,
    listing_id: Optional[int],
    amount: Optional[float],
    coins_used: Optional[int],
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Bid:
    now = now or utcnow()

    if not has_permission(user, BIDS_CREATE):
        raise Forbidden("Only buyers can place offers")
    if not listing_id or not amount or not coins_used or amount <= 0 or coins_used <= 0:
        raise BadRequest("Missing required fields")
    if (user.coins or 0) < coins_used:
        raise BadRequest("Insufficient coins")

    listing = db.get(Listing, listing_id)
    if not listing:
        raise NotFound("Listing not found")
    if listing.status != "ACTIVE":
        raise InvalidState("Listing is not active")

    existing = (
        db.query(Bid)
        .filter(Bid.user_id == user.id, Bid.listing_id == listing.id, Bid.status == "PENDING")
        .first()
    )
    if existing:
        raise InvalidState("You already have a pending offer on this listing")
    if listing.user_id == user.id:
        raise Forbidden("You cannot place an offer on your own listing")

    with unit_of_work(db):
        listing = _lock_listing(db, listing.id)
        if listing.status != "ACTIVE":
            raise InvalidState("Listing is not active")

        debit(
            db,
            user.id,
            coins_used,
            "BID_PLACED",
            f"Placed offer of ${amount:g} on listing {listing.title}",
        )
        bid = Bid(
            user_id=user.id,
            listing_id=listing.id,
            amount=float(amount),
            coins_used=coins_used,
            message=(message or "").strip() or None,
            status="PENDING",
            expires_at=now + timedelta(hours=BID_EXPIRY_HOURS),
            created_at=now,
        )
        db.add(bid)
        db.flush()

    log.info("bid %s placed on listing %s by user %s (%s coins)", bid.id, bid.listing_id, user.id, coins_used)
    return bid


# ---------------------------------------------------
# Accept an offer -> deal + chat
# ---------------------------------------------------
def _expire(db: Session, bid: Bid, now: datetime) -> None:
    with unit_of_work(db):
        (
            db.query(Bid)
            .filter(Bid.id == bid.id, Bid.status == "PENDING")
            .update({"status": "EXPIRED", "updated_at": now}, synchronize_session=False)
        )
    log.info("bid %s expired on accept attempt", bid.id)


def accept_bid(db: Session, bid_id: int, acting_user_id: int, now: Optional[datetime] = None) -> tuple[Deal, Chat]:
    """
    Seller accepts one PENDING bid. In one transaction: the bid becomes
    ACCEPTED, every other PENDING bid on the listing is REJECTED and refunded,
    a Deal and its Chat are created and the listing is marked SOLD.

    Preconditions are checked in order: NotFound, Forbidden, InvalidState,
    Expired. A stale PENDING bid is switched to EXPIRED before Expired is raised.
    """
    now = now or utcnow()

    bid = db.get(Bid, bid_id)
    if not bid:
        raise NotFound("Bid not found")
    listing = bid.listing
    if listing is None or listing.user_id != acting_user_id:
        raise Forbidden("Only listing owner can accept offers")
    if bid.status != "PENDING":
        raise InvalidState("Bid is not pending")
    if bid.expires_at and now > bid.expires_at:
        _expire(db, bid, now)
        raise Expired("This offer has expired")

    try:
        with unit_of_work(db):
            listing = _lock_listing(db, bid.listing_id)
            if listing.status == "SOLD":
                raise InvalidState("Listing is already sold")

            # Compare-and-set: a racing acceptance finds the bid already decided
            flipped = (
                db.query(Bid)
                .filter(Bid.id == bid.id, Bid.status == "PENDING")
                .update({"status": "ACCEPTED", "accepted_at": now, "updated_at": now}, synchronize_session=False)
            )
            if flipped != 1:
                raise InvalidState("Bid is not pending")

            competing = (
                db.query(Bid)
                .filter(Bid.listing_id == listing.id, Bid.id != bid.id, Bid.status == "PENDING")
                .with_for_update()
                .all()
            )
            for other in competing:
                other.status = "REJECTED"
                other.rejected_at = now
                if other.coins_used and other.coins_used > 0:
                    credit(
                        db,
                        other.user_id,
                        other.coins_used,
                        "BID_REFUND",
                        f"Refund for rejected offer on listing {listing.title}",
                    )

            deal = Deal(
                seller_id=listing.user_id,
                buyer_id=bid.user_id,
                listing_id=listing.id,
                bid_id=bid.id,
                amount=bid.amount,
                status="IN_PROGRESS",
                created_at=now,
            )
            db.add(deal)
            db.flush()

            chat = Chat(
                deal_id=deal.id,
                buyer_id=bid.user_id,
                seller_id=listing.user_id,
                listing_id=listing.id,
                created_at=now,
                updated_at=now,
            )
            db.add(chat)

            listing.status = "SOLD"
            db.flush()
    except SQLAlchemyError as e:
        log.exception("accepting bid %s failed, rolled back", bid_id)
        raise Internal() from e

    log.info(
        "bid %s accepted: deal %s, chat %s, %s competing bid(s) rejected",
        bid_id, deal.id, chat.id, len(competing),
    )
    return deal, chat


def list_bids(db: Session, listing_id: Optional[int] = None, user_id: Optional[int] = None) -> list[Bid]:
    q = db.query(Bid)
    if listing_id:
        q = q.filter(Bid.listing_id == listing_id)
    if user_id:
        q = q.filter(Bid.user_id == user_id)
    return q.order_by(Bid.amount.desc(), Bid.id.asc()).all()


# ===========================================================
# API
# ===========================================================
class BidBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listing_id: Optional[int] = Field(None, alias="listingId")
    amount: Optional[float] = None
    coins_used: Optional[int] = Field(None, alias="coinsUsed")
    message: Optional[str] = None


@router.post("", status_code=201)
def create_bid(body: BidBody, user: User = Depends(require_user), db: Session = Depends(get_db)):
    bid = place_bid(db, user, body.listing_id, body.amount, body.coins_used, body.message)
    return {"bid": bid_dict(bid)}


@router.get("")
def get_bids(
    listing_id: Optional[int] = Query(None, alias="listingId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    listing_id_snake: Optional[int] = Query(None, alias="listing_id"),
    user_id_snake: Optional[int] = Query(None, alias="user_id"),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    # Both camelCase (web client) and snake_case query names are accepted
    bids = list_bids(db, listing_id or listing_id_snake, user_id or user_id_snake)
    return {"bids": [bid_dict(b) for b in bids]}


@router.post("/{bid_id}/accept")
def accept(bid_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    deal, chat = accept_bid(db, bid_id, user.id)
    return {"success": True, "deal": deal_dict(deal), "chat": chat_dict(chat)}
