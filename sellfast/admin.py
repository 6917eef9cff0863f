# sellfast/admin.py
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from .auth import require_admin, user_public
from .catalog import category_dict, company_dict, item_dict, specification_dict
from .coins import credit
from .database import get_db, unit_of_work
from .errors import BadRequest, Conflict, NotFound
from .listings import listing_dict
from .models import (
    BASE_ROLES, Bid, Chat, ChatMessage, CoinTransaction, Company, ContactForm, CustomRole, Deal,
    Item, ItemCategory, Listing, ListingSpecification, PasswordResetToken, Specification, User,
)
from .permissions import ALL_PERMISSIONS
from .utils import EMAIL_RE, MIN_PASSWORD_CHARS, hash_password, parse_options, slugify

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _get_or_404(db: Session, model, obj_id: int, label: str):
    obj = db.get(model, obj_id)
    if not obj:
        raise NotFound(f"{label} not found")
    return obj


def _required(value: Optional[str], field: str, label: str) -> str:
    v = (value or "").strip()
    if not v:
        raise BadRequest(f"{label} is required", field=field)
    return v


# ===========================================================
# Categories
# ===========================================================
class CategoryBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class CategoryDeleteBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transfer_to: Optional[int] = Field(None, alias="transferTo")
    new_name: Optional[str] = Field(None, alias="newName")


def _category_conflict(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(ItemCategory).filter(func.lower(ItemCategory.name) == name.lower())
    if exclude_id:
        q = q.filter(ItemCategory.id != exclude_id)
    existing = q.first()
    if existing:
        raise Conflict("Category already exists", conflict=True, category=category_dict(existing))


@router.get("/categories")
def admin_categories(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(ItemCategory).order_by(ItemCategory.name.asc()).all()
    out = []
    for c in rows:
        data = category_dict(c)
        data["item_count"] = len(c.items)
        out.append(data)
    return {"categories": out}


@router.post("/categories", status_code=201)
def admin_category_create(body: CategoryBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    name = _required(body.name, "name", "Name")
    _category_conflict(db, name)
    cat = ItemCategory(name=name, description=body.description, icon=body.icon or None)
    db.add(cat)
    db.commit()
    db.refresh(cat)
    log.info("admin %s created category %s", admin.id, cat.id)
    return {"category": category_dict(cat)}


@router.patch("/categories/{category_id}")
def admin_category_update(
    category_id: int, body: CategoryBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    cat = _get_or_404(db, ItemCategory, category_id, "Category")
    if body.name is not None:
        name = _required(body.name, "name", "Name")
        _category_conflict(db, name, exclude_id=cat.id)
        cat.name = name
    if body.description is not None:
        cat.description = body.description
    if body.icon is not None:
        cat.icon = body.icon or None
    db.commit()
    db.refresh(cat)
    return {"category": category_dict(cat)}


@router.delete("/categories/{category_id}")
def admin_category_delete(
    category_id: int,
    body: Optional[CategoryDeleteBody] = Body(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    A category that still holds items is only removed when the items are
    moved: either to `transferTo` or to a new category called `newName`.
    """
    cat = _get_or_404(db, ItemCategory, category_id, "Category")
    body = body or CategoryDeleteBody()

    with unit_of_work(db):
        if cat.items:
            target_id = body.transfer_to
            if body.new_name and body.new_name.strip():
                _category_conflict(db, body.new_name.strip())
                target = ItemCategory(name=body.new_name.strip())
                db.add(target)
                db.flush()
                target_id = target.id
            if not target_id or target_id == cat.id:
                raise BadRequest("Category has items; choose a category to move them to", field="transferTo")
            _get_or_404(db, ItemCategory, target_id, "Target category")
            for item in list(cat.items):
                item.category_id = target_id
            db.flush()
            db.expire(cat, ["items"])
        db.delete(cat)

    log.info("admin %s deleted category %s", admin.id, category_id)
    return {"success": True}


# ===========================================================
# Brands (companies)
# ===========================================================
class BrandBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    icon: Optional[str] = None
    origin: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    item_ids: Optional[List[int]] = Field(None, alias="itemIds")


def _unique_slug(db: Session, name: str, exclude_id: Optional[int] = None) -> str:
    base = slugify(name)
    slug, n = base, 2
    while True:
        q = db.query(Company.id).filter(Company.slug == slug)
        if exclude_id:
            q = q.filter(Company.id != exclude_id)
        if not q.first():
            return slug
        slug = f"{base}-{n}"
        n += 1


def _brand_conflict(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Company).filter(func.lower(Company.name) == name.lower())
    if exclude_id:
        q = q.filter(Company.id != exclude_id)
    existing = q.first()
    if existing:
        raise Conflict("Brand already exists", conflict=True, brand=company_dict(existing))


def _set_brand_items(db: Session, brand: Company, item_ids: List[int]) -> None:
    items = db.query(Item).filter(Item.id.in_(item_ids)).all() if item_ids else []
    if len(items) != len(set(item_ids)):
        raise NotFound("Item not found")
    brand.items = items


@router.get("/brands")
def admin_brands(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(Company).order_by(Company.name.asc()).all()
    out = []
    for c in rows:
        data = company_dict(c)
        data["items"] = [{"id": i.id, "name": i.name} for i in c.items]
        data["listing_count"] = len(c.listings)
        out.append(data)
    return {"brands": out}


@router.post("/brands", status_code=201)
def admin_brand_create(body: BrandBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    name = _required(body.name, "name", "Name")
    _brand_conflict(db, name)
    brand = Company(
        name=name,
        slug=_unique_slug(db, name),
        icon=body.icon or None,
        origin=body.origin or None,
        website=body.website or None,
        notes=body.notes or None,
    )
    if body.item_ids:
        _set_brand_items(db, brand, body.item_ids)
    db.add(brand)
    db.commit()
    db.refresh(brand)
    log.info("admin %s created brand %s (%s)", admin.id, brand.id, brand.slug)
    return {"brand": company_dict(brand)}


@router.patch("/brands/{brand_id}")
def admin_brand_update(brand_id: int, body: BrandBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    brand = _get_or_404(db, Company, brand_id, "Brand")
    if body.name is not None:
        name = _required(body.name, "name", "Name")
        _brand_conflict(db, name, exclude_id=brand.id)
        if name != brand.name:
            brand.name = name
            brand.slug = _unique_slug(db, name, exclude_id=brand.id)
    for field in ("icon", "origin", "website", "notes"):
        value = getattr(body, field)
        if value is not None:
            setattr(brand, field, value or None)
    if body.item_ids is not None:
        _set_brand_items(db, brand, body.item_ids)
    db.commit()
    db.refresh(brand)
    return {"brand": company_dict(brand)}


@router.delete("/brands/{brand_id}")
def admin_brand_delete(brand_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    brand = _get_or_404(db, Company, brand_id, "Brand")
    if brand.listings:
        raise BadRequest("Brand is used by listings and cannot be deleted")
    brand.items = []
    db.delete(brand)
    db.commit()
    log.info("admin %s deleted brand %s", admin.id, brand_id)
    return {"success": True}


# ===========================================================
# Items
# ===========================================================
class ItemBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    category_id: Optional[int] = Field(None, alias="categoryId")
    company_ids: Optional[List[int]] = Field(None, alias="companyIds")


def _item_conflict(db: Session, name: str, category_id: int, exclude_id: Optional[int] = None) -> None:
    q = db.query(Item).filter(func.lower(Item.name) == name.lower(), Item.category_id == category_id)
    if exclude_id:
        q = q.filter(Item.id != exclude_id)
    existing = q.first()
    if existing:
        raise Conflict("Item already exists in this category", conflict=True, item=item_dict(existing))


def _set_item_companies(db: Session, item: Item, company_ids: List[int]) -> None:
    companies = db.query(Company).filter(Company.id.in_(company_ids)).all() if company_ids else []
    if len(companies) != len(set(company_ids)):
        raise NotFound("Company not found")
    item.companies = companies


@router.get("/items")
def admin_items(
    category_id: Optional[int] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(Item)
    if category_id:
        q = q.filter(Item.category_id == category_id)
    return {"items": [item_dict(i) for i in q.order_by(Item.name.asc()).all()]}


@router.post("/items", status_code=201)
def admin_item_create(body: ItemBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    name = _required(body.name, "name", "Name")
    if not body.category_id:
        raise BadRequest("Category is required", field="category_id")
    _get_or_404(db, ItemCategory, body.category_id, "Category")
    _item_conflict(db, name, body.category_id)

    item = Item(name=name, category_id=body.category_id)
    if body.company_ids:
        _set_item_companies(db, item, body.company_ids)
    db.add(item)
    db.commit()
    db.refresh(item)
    log.info("admin %s created item %s", admin.id, item.id)
    return {"item": item_dict(item)}


@router.patch("/items/{item_id}")
def admin_item_update(item_id: int, body: ItemBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    item = _get_or_404(db, Item, item_id, "Item")
    name = item.name if body.name is None else _required(body.name, "name", "Name")
    category_id = body.category_id or item.category_id
    if body.category_id:
        _get_or_404(db, ItemCategory, body.category_id, "Category")
    _item_conflict(db, name, category_id, exclude_id=item.id)

    item.name = name
    item.category_id = category_id
    if body.company_ids is not None:
        _set_item_companies(db, item, body.company_ids)
    db.commit()
    db.refresh(item)
    return {"item": item_dict(item)}


@router.delete("/items/{item_id}")
def admin_item_delete(item_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    item = _get_or_404(db, Item, item_id, "Item")
    if item.listings:
        raise BadRequest("Item is used by listings and cannot be deleted")
    item.companies = []
    db.delete(item)
    db.commit()
    log.info("admin %s deleted item %s", admin.id, item_id)
    return {"success": True}


# ===========================================================
# Specifications
# ===========================================================
VALUE_TYPES = ("text", "number", "select", "boolean")


class SpecificationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: Optional[int] = Field(None, alias="itemId")
    name: Optional[str] = None
    value_type: Optional[str] = Field(None, alias="valueType")
    options: Optional[Any] = None
    icon: Optional[str] = None
    position: Optional[int] = None
    is_required: Optional[bool] = Field(None, alias="isRequired")


def _spec_conflict(db: Session, item_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Specification).filter(
        Specification.item_id == item_id, func.lower(Specification.name) == name.lower()
    )
    if exclude_id:
        q = q.filter(Specification.id != exclude_id)
    existing = q.first()
    if existing:
        raise Conflict(
            "Specification already exists for this item",
            conflict=True,
            specification=specification_dict(existing),
        )


def _value_type(raw: Optional[str]) -> str:
    vt = (raw or "text").strip().lower()
    if vt not in VALUE_TYPES:
        raise BadRequest(f"value_type must be one of {', '.join(VALUE_TYPES)}", field="value_type")
    return vt


@router.get("/specifications")
def admin_specifications(
    item_id: Optional[int] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(Specification)
    if item_id:
        q = q.filter(Specification.item_id == item_id)
    rows = q.order_by(Specification.item_id.asc(), Specification.position.asc(), Specification.id.asc()).all()
    return {"specifications": [specification_dict(s) for s in rows]}


@router.post("/specifications", status_code=201)
def admin_specification_create(
    body: SpecificationBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    if not body.item_id:
        raise BadRequest("Item is required", field="item_id")
    item = _get_or_404(db, Item, body.item_id, "Item")
    name = _required(body.name, "name", "Name")
    _spec_conflict(db, item.id, name)

    position = body.position
    if position is None:
        position = len(item.specifications)
    spec = Specification(
        item_id=item.id,
        name=name,
        value_type=_value_type(body.value_type),
        options=parse_options(body.options),
        icon=body.icon or None,
        position=position,
        is_required=bool(body.is_required),
    )
    db.add(spec)
    db.commit()
    db.refresh(spec)
    return {"specification": specification_dict(spec)}


@router.patch("/specifications/{spec_id}")
def admin_specification_update(
    spec_id: int, body: SpecificationBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    spec = _get_or_404(db, Specification, spec_id, "Specification")
    if body.name is not None:
        name = _required(body.name, "name", "Name")
        _spec_conflict(db, spec.item_id, name, exclude_id=spec.id)
        spec.name = name
    if body.value_type is not None:
        spec.value_type = _value_type(body.value_type)
    if body.options is not None:
        spec.options = parse_options(body.options)
    if body.icon is not None:
        spec.icon = body.icon or None
    if body.position is not None:
        spec.position = body.position
    if body.is_required is not None:
        spec.is_required = body.is_required
    db.commit()
    db.refresh(spec)
    return {"specification": specification_dict(spec)}


@router.delete("/specifications/{spec_id}")
def admin_specification_delete(spec_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    spec = _get_or_404(db, Specification, spec_id, "Specification")
    with unit_of_work(db):
        db.query(ListingSpecification).filter(
            ListingSpecification.specification_id == spec.id
        ).delete(synchronize_session=False)
        db.delete(spec)
    return {"success": True}


# ===========================================================
# Roles
# ===========================================================
class RoleBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = Field(None, alias="isActive")


def role_dict(r: CustomRole, user_count: int = 0) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "description": r.description,
        "permissions": list(r.permissions or []),
        "is_active": r.is_active,
        "user_count": user_count,
        "created_at": r.created_at,
    }


def _clean_permissions(perms: List[str]) -> List[str]:
    unknown = [p for p in perms if p not in ALL_PERMISSIONS]
    if unknown:
        raise BadRequest(f"Unknown permission: {unknown[0]}", field="permissions")
    # keep order, drop repeats
    return list(dict.fromkeys(perms))


def _role_conflict(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(CustomRole).filter(func.lower(CustomRole.name) == name.lower())
    if exclude_id:
        q = q.filter(CustomRole.id != exclude_id)
    existing = q.first()
    if existing:
        raise Conflict("Role already exists", conflict=True, role=role_dict(existing, len(existing.users)))


@router.get("/roles")
def admin_roles(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(CustomRole).order_by(CustomRole.name.asc()).all()
    return {
        "roles": [role_dict(r, len(r.users)) for r in rows],
        "permissions": list(ALL_PERMISSIONS),
    }


@router.post("/roles", status_code=201)
def admin_role_create(body: RoleBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    name = (body.name or "").strip()
    if not name or body.permissions is None:
        raise BadRequest("Name and permissions are required")
    _role_conflict(db, name)
    role = CustomRole(
        name=name,
        description=body.description,
        permissions=_clean_permissions(body.permissions),
        is_active=True if body.is_active is None else body.is_active,
    )
    db.add(role)
    db.commit()
    db.refresh(role)
    log.info("admin %s created role %s", admin.id, role.id)
    return {"role": role_dict(role)}


@router.patch("/roles/{role_id}")
def admin_role_update(role_id: int, body: RoleBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = _get_or_404(db, CustomRole, role_id, "Role")
    if body.name is not None:
        name = _required(body.name, "name", "Name")
        _role_conflict(db, name, exclude_id=role.id)
        role.name = name
    if body.description is not None:
        role.description = body.description
    if body.permissions is not None:
        role.permissions = _clean_permissions(body.permissions)
    if body.is_active is not None:
        role.is_active = body.is_active
    db.commit()
    db.refresh(role)
    return {"role": role_dict(role, len(role.users))}


@router.delete("/roles/{role_id}")
def admin_role_delete(role_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = _get_or_404(db, CustomRole, role_id, "Role")
    with unit_of_work(db):
        unassigned = 0
        for u in list(role.users):
            u.custom_role_id = None
            unassigned += 1
        db.flush()
        db.expire(role, ["users"])
        db.delete(role)
    log.info("admin %s deleted role %s (%s user(s) unassigned)", admin.id, role_id, unassigned)
    return {"success": True, "unassigned_users": unassigned}


# ===========================================================
# Users
# ===========================================================
class AdminUserBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    custom_role_id: Optional[int] = Field(None, alias="customRoleId")
    clear_custom_role: bool = Field(False, alias="clearCustomRole")
    is_active: Optional[bool] = Field(None, alias="isActive")


def _admin_user_dict(db: Session, u: User) -> dict:
    data = user_public(u)
    data["custom_role"] = u.custom_role.name if u.custom_role else None
    data["created_at"] = u.created_at
    data["listing_count"] = db.query(func.count(Listing.id)).filter(Listing.user_id == u.id).scalar()
    data["bid_count"] = db.query(func.count(Bid.id)).filter(Bid.user_id == u.id).scalar()
    return data


@router.get("/users")
def admin_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return {"users": [_admin_user_dict(db, u) for u in rows]}


@router.patch("/users/{user_id}")
def admin_user_update(
    user_id: int, body: AdminUserBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    u = _get_or_404(db, User, user_id, "User")

    if body.name is not None:
        u.name = _required(body.name, "name", "Name")
    if body.email is not None:
        email = body.email.strip().lower()
        if not EMAIL_RE.match(email):
            raise BadRequest("Invalid email format", field="email")
        taken = db.query(User.id).filter(User.email == email, User.id != u.id).first()
        if taken:
            raise BadRequest("User with this email already exists", field="email")
        u.email = email
    if body.phone is not None:
        u.phone = body.phone.strip() or None
    if body.password:
        if len(body.password) < MIN_PASSWORD_CHARS:
            raise BadRequest(f"Password must be at least {MIN_PASSWORD_CHARS} characters long", field="password")
        u.password_hash = hash_password(body.password)
    if body.role is not None:
        role = body.role.strip().upper()
        if role not in BASE_ROLES:
            raise BadRequest(f"role must be one of {', '.join(BASE_ROLES)}", field="role")
        u.role = role
    if body.clear_custom_role:
        u.custom_role_id = None
    elif body.custom_role_id is not None:
        _get_or_404(db, CustomRole, body.custom_role_id, "Role")
        u.custom_role_id = body.custom_role_id
    if body.is_active is not None:
        if u.id == admin.id and not body.is_active:
            raise BadRequest("You cannot disable your own account", field="is_active")
        u.is_active = body.is_active

    db.commit()
    db.refresh(u)
    log.info("admin %s updated user %s", admin.id, u.id)
    return {"user": _admin_user_dict(db, u)}


def delete_user(db: Session, user_id: int, admin: User) -> None:
    """
    Remove a user together with everything hanging off the account: deals
    they took part in (with chats), their listings (refunding other buyers'
    open offers), their own offers, their coin history and reset tokens.
    Contact forms they sent are kept, detached from the account.
    """
    if user_id == admin.id:
        raise BadRequest("You cannot delete your own account")
    u = _get_or_404(db, User, user_id, "User")

    with unit_of_work(db):
        for deal in db.query(Deal).filter((Deal.buyer_id == u.id) | (Deal.seller_id == u.id)).all():
            db.delete(deal)
        db.flush()

        for listing in db.query(Listing).filter(Listing.user_id == u.id).all():
            for bid in listing.bids:
                if bid.status == "PENDING" and bid.user_id != u.id and bid.coins_used:
                    credit(
                        db,
                        bid.user_id,
                        bid.coins_used,
                        "BID_REFUND",
                        f"Refund for offer on removed listing {listing.title}",
                    )
            db.delete(listing)
        db.flush()

        for bid in db.query(Bid).filter(Bid.user_id == u.id).all():
            db.delete(bid)
        for tx in db.query(CoinTransaction).filter(CoinTransaction.user_id == u.id).all():
            db.delete(tx)
        db.query(PasswordResetToken).filter(PasswordResetToken.user_id == u.id).delete(synchronize_session=False)
        # support messages outlive the account
        db.query(ContactForm).filter(ContactForm.user_id == u.id).update({"user_id": None}, synchronize_session=False)
        db.flush()

        db.expire(u)
        db.delete(u)

    log.warning("admin %s deleted user %s", admin.id, user_id)


@router.delete("/users/{user_id}")
def admin_user_delete(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    delete_user(db, user_id, admin)
    return {"success": True}


# ===========================================================
# Listings moderation
# ===========================================================
class ListingStatusBody(BaseModel):
    status: str


@router.get("/listings")
def admin_listings(
    status: Optional[str] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(Listing)
    if status:
        q = q.filter(Listing.status == status.upper())
    rows = q.order_by(Listing.created_at.desc(), Listing.id.desc()).all()
    return {"listings": [listing_dict(l) for l in rows]}


@router.get("/listings/{listing_id}")
def admin_listing(listing_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    listing = _get_or_404(db, Listing, listing_id, "Listing")
    return {"listing": listing_dict(listing, with_bids=True)}


@router.put("/listings/{listing_id}")
def admin_listing_status(
    listing_id: int, body: ListingStatusBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    status = (body.status or "").strip().upper()
    if status not in ("ACTIVE", "REJECTED"):
        raise BadRequest("Status must be ACTIVE or REJECTED", field="status")
    listing = _get_or_404(db, Listing, listing_id, "Listing")
    if listing.status == "SOLD":
        raise BadRequest("Sold listings cannot change status", field="status")
    listing.status = status
    db.commit()
    db.refresh(listing)
    log.info("admin %s set listing %s to %s", admin.id, listing.id, status)
    return {"listing": listing_dict(listing)}


# ===========================================================
# Stats
# ===========================================================
@router.get("/stats")
def admin_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    by_status = dict(db.query(Listing.status, func.count(Listing.id)).group_by(Listing.status).all())
    return {
        "total_users": db.query(func.count(User.id)).scalar(),
        "total_listings": sum(by_status.values()),
        "active_listings": by_status.get("ACTIVE", 0),
        "pending_listings": by_status.get("PENDING", 0),
        "sold_listings": by_status.get("SOLD", 0),
        "rejected_listings": by_status.get("REJECTED", 0),
        "total_products": db.query(func.count(Item.id)).scalar(),
        "total_bids": db.query(func.count(Bid.id)).scalar(),
        "total_deals": db.query(func.count(Deal.id)).scalar(),
    }


# ===========================================================
# Activity feed
# ===========================================================
ACTIVITY_LIMIT = 500


def _latest(db: Session, model, limit: int):
    return db.query(model).order_by(model.created_at.desc(), model.id.desc()).limit(limit).all()


def _coin_verb(tx: CoinTransaction) -> str:
    if tx.type == "RECHARGE":
        return "recharged"
    if tx.type == "BID_REFUND":
        return "was refunded"
    return "spent"


def recent_activity(db: Session, limit: int = ACTIVITY_LIMIT) -> list[dict]:
    """
    Newest-first merge of recent bids, deals, chats, messages and coin
    movements, one uniform entry per event.
    """
    activities = []

    for b in _latest(db, Bid, 100):
        activities.append({
            "type": "BID",
            "id": b.id,
            "user_id": b.user_id,
            "user_name": b.user.name,
            "description": f'{b.user.name} placed an offer of ${b.amount:g} on "{b.listing.title}"',
            "timestamp": b.created_at,
            "details": {"amount": b.amount, "status": b.status, "listing_title": b.listing.title},
        })

    for d in _latest(db, Deal, 100):
        activities.append({
            "type": "DEAL",
            "id": d.id,
            "user_id": d.buyer_id,
            "user_name": d.buyer.name,
            "description": f'Deal created: {d.buyer.name} bought "{d.listing.title}" for ${d.amount:g}',
            "timestamp": d.created_at,
            "details": {"amount": d.amount, "status": d.status, "is_success": d.is_success},
        })

    for c in _latest(db, Chat, 100):
        activities.append({
            "type": "CHAT",
            "id": c.id,
            "user_id": c.buyer_id,
            "user_name": f"{c.buyer.name} & {c.seller.name}",
            "description": f'Chat created between {c.buyer.name} and {c.seller.name} for "{c.listing.title}"',
            "timestamp": c.created_at,
            "details": {"blocked": c.blocked, "block_reason": c.block_reason},
        })

    for m in _latest(db, ChatMessage, 200):
        activities.append({
            "type": "MESSAGE",
            "id": m.id,
            "user_id": m.sender_id,
            "user_name": m.sender.name,
            "description": f"{m.sender.name} sent a message{' (BLOCKED)' if m.is_blocked else ''}",
            "timestamp": m.created_at,
            "details": {
                "is_blocked": m.is_blocked,
                "block_reason": m.block_reason,
                "is_location": m.is_location,
                "listing_title": m.chat.listing.title,
            },
        })

    for tx in _latest(db, CoinTransaction, 100):
        activities.append({
            "type": "COIN_TRANSACTION",
            "id": tx.id,
            "user_id": tx.user_id,
            "user_name": tx.user.name,
            "description": f"{tx.user.name} {_coin_verb(tx)} {abs(tx.amount)} coins",
            "timestamp": tx.created_at,
            "details": {"amount": tx.amount, "type": tx.type, "payment_method": tx.payment_method},
        })

    activities.sort(key=lambda a: a["timestamp"], reverse=True)
    return activities[:limit]


@router.get("/activity")
def admin_activity(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"activities": recent_activity(db)}
