# sellfast/coins.py
from __future__ import annotations

import logging
import math
import os
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .auth import require_user
from .database import get_db, unit_of_work
from .errors import BadRequest, NotFound
from .models import CoinTransaction, User

log = logging.getLogger(__name__)

# 1 currency unit buys this many coins
COINS_PER_UNIT = int(os.getenv("COINS_PER_UNIT", "10"))

router = APIRouter(prefix="/api/user", tags=["coins"])

# Ledger rules:
#   users.coins is the running balance, coin_transactions the audit trail.
#   Both change in the same transaction and nothing here commits.


def _locked_user(db: Session, user_id: int) -> User:
    """
    Load the user row with FOR UPDATE (ignored on SQLite) so concurrent
    balance changes on the same account are serialized.
    """
    user = (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not user:
        raise NotFound("User not found")
    return user


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise BadRequest("Coin amount must be a positive integer")
    return amount


def credit(
    db: Session,
    user_id: int,
    amount: int,
    kind: str,
    description: str,
    payment_method: Optional[str] = None,
    payment_id: Optional[str] = None,
) -> CoinTransaction:
    """balance += amount, plus a positive ledger row."""
    amt = _check_amount(amount)
    user = _locked_user(db, user_id)
    user.coins = (user.coins or 0) + amt

    tx = CoinTransaction(
        user_id=user.id,
        amount=amt,
        type=kind,
        description=description,
        payment_method=payment_method,
        payment_id=payment_id,
        status="COMPLETED",
    )
    db.add(tx)
    db.flush()
    return tx


def debit(db: Session, user_id: int, amount: int, kind: str, description: str) -> CoinTransaction:
    """balance -= amount (never below zero), plus a negative ledger row."""
    amt = _check_amount(amount)
    user = _locked_user(db, user_id)
    if (user.coins or 0) < amt:
        raise BadRequest("Insufficient coins")
    user.coins = user.coins - amt

    tx = CoinTransaction(
        user_id=user.id,
        amount=-amt,
        type=kind,
        description=description,
        status="COMPLETED",
    )
    db.add(tx)
    db.flush()
    return tx


def balance(db: Session, user_id: int) -> int:
    coins = db.query(User.coins).filter(User.id == user_id).scalar()
    if coins is None:
        raise NotFound("User not found")
    return int(coins)


def transaction_dict(tx: CoinTransaction) -> dict:
    return {
        "id": tx.id,
        "amount": tx.amount,
        "type": tx.type,
        "description": tx.description,
        "payment_method": tx.payment_method,
        "payment_id": tx.payment_id,
        "status": tx.status,
        "created_at": tx.created_at,
    }


# ===========================================================
# API
# ===========================================================
class RechargeBody(BaseModel):
    amount: float
    payment_method: Optional[str] = None


@router.get("/coins")
def get_coins(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return {"coins": balance(db, user.id)}


@router.post("/recharge-coins")
def recharge_coins(body: RechargeBody, user: User = Depends(require_user), db: Session = Depends(get_db)):
    if not body.amount or body.amount <= 0:
        raise BadRequest("Invalid amount")

    coins_to_add = math.floor(body.amount * COINS_PER_UNIT)
    if coins_to_add <= 0:
        raise BadRequest("Invalid amount")

    # No gateway yet: the payment is treated as successful
    method = (body.payment_method or "card").strip() or "card"
    payment_id = f"payment_{uuid.uuid4().hex[:16]}"

    with unit_of_work(db):
        credit(
            db,
            user.id,
            coins_to_add,
            "RECHARGE",
            f"Recharged {coins_to_add} coins via {method}",
            payment_method=method,
            payment_id=payment_id,
        )

    new_balance = balance(db, user.id)
    log.info("user %s recharged %s coins (balance %s)", user.id, coins_to_add, new_balance)
    return {"success": True, "coins_added": coins_to_add, "new_balance": new_balance}


@router.get("/coin-transactions")
def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(CoinTransaction)
        .filter(CoinTransaction.user_id == user.id)
        .order_by(CoinTransaction.created_at.desc(), CoinTransaction.id.desc())
        .limit(limit)
        .all()
    )
    return {"transactions": [transaction_dict(t) for t in rows]}
