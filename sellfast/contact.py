# sellfast/contact.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .auth import get_current_user, require_admin
from .database import get_db
from .errors import BadRequest
from .models import ContactForm, User
from .utils import EMAIL_RE

log = logging.getLogger(__name__)

router = APIRouter(tags=["contact"])


def contact_dict(c: ContactForm) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "subject": c.subject,
        "message": c.message,
        "user_id": c.user_id,
        "user": {"id": c.user.id, "name": c.user.name, "email": c.user.email} if c.user else None,
        "created_at": c.created_at,
    }


class ContactBody(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


# ============ Public form ============
@router.post("/api/contact", status_code=201)
def contact_create(
    body: ContactBody,
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    name = (body.name or "").strip()
    email = (body.email or "").strip()
    subject = (body.subject or "").strip()
    message = (body.message or "").strip()
    if not name or not email or not subject or not message:
        raise BadRequest("Missing required fields")
    if not EMAIL_RE.match(email):
        raise BadRequest("Invalid email format", field="email")

    form = ContactForm(
        name=name,
        email=email,
        subject=subject,
        message=message,
        user_id=user.id if user else None,
    )
    db.add(form)
    db.commit()
    db.refresh(form)
    log.info("contact form %s received (user %s)", form.id, form.user_id)
    return {"contact_form": contact_dict(form)}


# ============ Admin inbox ============
@router.get("/api/admin/contacts")
def admin_contacts(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(ContactForm).order_by(ContactForm.created_at.desc(), ContactForm.id.desc()).all()
    return {"contacts": [contact_dict(c) for c in rows]}
