# sellfast/chats.py
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .auth import require_user
from .database import get_db, unit_of_work
from .errors import BadRequest, NotFound
from .models import Chat, ChatMessage, User, utcnow
from .moderation import CHAT_BLOCK_REASON, MESSAGE_BLOCK_REASON, contains_phone_number

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chats", tags=["chats"])


def _party(u: User | None) -> dict | None:
    if u is None:
        return None
    return {"id": u.id, "name": u.name, "image": u.image}


def message_dict(m: ChatMessage) -> dict:
    return {
        "id": m.id,
        "chat_id": m.chat_id,
        "sender_id": m.sender_id,
        "message": m.message,
        "latitude": m.latitude,
        "longitude": m.longitude,
        "is_location": m.is_location,
        "is_blocked": m.is_blocked,
        "block_reason": m.block_reason,
        "created_at": m.created_at,
    }


def chat_dict(c: Chat) -> dict:
    return {
        "id": c.id,
        "deal_id": c.deal_id,
        "buyer_id": c.buyer_id,
        "seller_id": c.seller_id,
        "listing_id": c.listing_id,
        "blocked": c.blocked,
        "block_reason": c.block_reason,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def _chat_summary(db: Session, c: Chat) -> dict:
    data = chat_dict(c)
    data["buyer"] = _party(c.buyer)
    data["seller"] = _party(c.seller)
    data["listing"] = {"id": c.listing.id, "title": c.listing.title} if c.listing else None
    d = c.deal
    data["deal"] = (
        {"id": d.id, "amount": d.amount, "status": d.status, "is_success": d.is_success}
        if d else None
    )
    last = (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == c.id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .first()
    )
    data["last_message"] = message_dict(last) if last else None
    return data


# ---------------------------------------------------
# Reads
# ---------------------------------------------------
def list_chats(db: Session, user_id: int) -> list[Chat]:
    return (
        db.query(Chat)
        .filter(or_(Chat.buyer_id == user_id, Chat.seller_id == user_id))
        .filter(Chat.blocked.is_(False))
        .order_by(Chat.updated_at.desc(), Chat.id.desc())
        .all()
    )


def get_chat_for(db: Session, chat_id: int, user_id: int) -> Chat:
    chat = (
        db.query(Chat)
        .filter(Chat.id == chat_id, or_(Chat.buyer_id == user_id, Chat.seller_id == user_id))
        .first()
    )
    if not chat:
        raise NotFound("Chat not found")
    return chat


def list_messages(db: Session, chat_id: int, user_id: int) -> list[ChatMessage]:
    chat = get_chat_for(db, chat_id, user_id)
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == chat.id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


# ---------------------------------------------------
# Post (with moderation)
# ---------------------------------------------------
def post_message(
    db: Session,
    chat_id: int,
    sender_id: int,
    text: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    is_location: bool = False,
    now: Optional[datetime] = None,
) -> ChatMessage:
    """
    Append a message to an open chat the sender belongs to.

    Missing, foreign and blocked chats all answer "Chat not found". Location
    messages skip moderation. A text that looks like a phone number is stored
    flagged and latches the whole chat to blocked.
    """
    now = now or utcnow()

    with unit_of_work(db):
        chat = (
            db.query(Chat)
            .filter(
                Chat.id == chat_id,
                or_(Chat.buyer_id == sender_id, Chat.seller_id == sender_id),
                Chat.blocked.is_(False),
            )
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not chat:
            raise NotFound("Chat not found")

        if is_location:
            if latitude is None or longitude is None:
                raise BadRequest("Location messages need latitude and longitude")
            msg = ChatMessage(
                chat_id=chat.id,
                sender_id=sender_id,
                message=None,
                latitude=latitude,
                longitude=longitude,
                is_location=True,
                created_at=now,
            )
        else:
            body = (text or "").strip()
            if not body:
                raise BadRequest("Message cannot be empty")
            msg = ChatMessage(
                chat_id=chat.id,
                sender_id=sender_id,
                message=body,
                is_location=False,
                created_at=now,
            )
            if contains_phone_number(body):
                msg.is_blocked = True
                msg.block_reason = MESSAGE_BLOCK_REASON
                chat.blocked = True
                chat.block_reason = CHAT_BLOCK_REASON
                log.warning("chat %s blocked: phone number in message from user %s", chat.id, sender_id)

        db.add(msg)
        chat.updated_at = now
        db.flush()

    return msg


# ===========================================================
# API
# ===========================================================
class MessageBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_location: bool = Field(False, alias="isLocation")


@router.get("")
def my_chats(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return {"chats": [_chat_summary(db, c) for c in list_chats(db, user.id)]}


@router.get("/{chat_id}")
def chat_detail(chat_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    return {"chat": _chat_summary(db, get_chat_for(db, chat_id, user.id))}


@router.get("/{chat_id}/messages")
def get_messages(chat_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    return {"messages": [message_dict(m) for m in list_messages(db, chat_id, user.id)]}


@router.post("/{chat_id}/messages", status_code=201)
def send_message(
    chat_id: int,
    body: MessageBody,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    msg = post_message(
        db,
        chat_id,
        user.id,
        text=body.message,
        latitude=body.latitude,
        longitude=body.longitude,
        is_location=body.is_location,
    )
    return {"message": message_dict(msg)}
