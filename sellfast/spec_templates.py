# sellfast/spec_templates.py
"""
Specification templates: the fields admins pre-define per category (and per
brand, optionally narrowed to one category) so new catalogue items start
with a ready-made list of specifications.
"""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from .admin import VALUE_TYPES, _get_or_404
from .auth import require_admin
from .database import get_db, unit_of_work
from .errors import BadRequest, Conflict
from .models import BrandSpecification, CategorySpecification, Company, ItemCategory, User
from .utils import parse_options

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

# Offered when no category template exists yet
DEFAULT_COMMON_SPECS = [
    {"name": "RAM", "value_type": "select", "options": ["4GB", "6GB", "8GB", "12GB", "16GB", "32GB", "64GB"]},
    {"name": "Storage (SSD)", "value_type": "select", "options": ["64GB", "128GB", "256GB", "512GB", "1TB", "2TB", "4TB"]},
    {"name": "Storage (HDD)", "value_type": "select", "options": ["500GB", "1TB", "2TB", "4TB", "8TB"]},
    {"name": "Processor", "value_type": "select", "options": []},
    {"name": "Screen Size", "value_type": "select", "options": []},
    {"name": "Weight", "value_type": "select", "options": []},
    {"name": "Battery Life", "value_type": "select", "options": []},
    {"name": "Graphics Card", "value_type": "select", "options": []},
    {"name": "Operating System", "value_type": "select", "options": []},
    {"name": "Display Resolution", "value_type": "select", "options": []},
    {"name": "Camera", "value_type": "select", "options": []},
    {"name": "Front Camera", "value_type": "select", "options": []},
    {"name": "Connectivity", "value_type": "select", "options": []},
    {"name": "Network", "value_type": "select", "options": []},
    {"name": "SIM Card", "value_type": "select", "options": []},
    {"name": "Storage Type", "value_type": "select", "options": []},
    {"name": "Display Type", "value_type": "select", "options": []},
    {"name": "Refresh Rate", "value_type": "select", "options": []},
    {"name": "Color", "value_type": "select", "options": []},
    {"name": "Warranty", "value_type": "select", "options": []},
    {"name": "Condition", "value_type": "select", "options": []},
]


def _ref(obj) -> Optional[dict]:
    return {"id": obj.id, "name": obj.name} if obj is not None else None


def category_template_dict(s: CategorySpecification) -> dict:
    return {
        "id": s.id,
        "category_id": s.category_id,
        "category": _ref(s.category),
        "name": s.name,
        "value_type": s.value_type,
        "options": s.options,
        "icon": s.icon,
        "position": s.position,
        "is_required": s.is_required,
        "created_at": s.created_at,
    }


def brand_template_dict(s: BrandSpecification) -> dict:
    return {
        "id": s.id,
        "company_id": s.company_id,
        "company": _ref(s.company),
        "category_id": s.category_id,
        "category": _ref(s.category),
        "name": s.name,
        "value_type": s.value_type,
        "options": s.options,
        "icon": s.icon,
        "position": s.position,
        "is_required": s.is_required,
        "created_at": s.created_at,
    }


class TemplateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: Optional[int] = Field(None, alias="categoryId")
    company_id: Optional[int] = Field(None, alias="companyId")
    name: Optional[str] = None
    value_type: Optional[str] = Field(None, alias="valueType")
    options: Optional[Any] = None
    icon: Optional[str] = None
    order: Optional[int] = None
    is_required: Optional[bool] = Field(None, alias="isRequired")


class TemplateBulkBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: Optional[int] = Field(None, alias="categoryId")
    specifications: Optional[List[TemplateBody]] = None


def _value_type(raw: Optional[str]) -> str:
    vt = (raw or "").strip().lower()
    if vt not in VALUE_TYPES:
        raise BadRequest(f"value_type must be one of {', '.join(VALUE_TYPES)}", field="value_type")
    return vt


def _category_template_conflict(db: Session, category_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(CategorySpecification).filter(
        CategorySpecification.category_id == category_id,
        func.lower(CategorySpecification.name) == name.lower(),
    )
    if exclude_id:
        q = q.filter(CategorySpecification.id != exclude_id)
    existing = q.first()
    if existing:
        raise Conflict(
            "Specification with this name already exists for this category",
            conflict=True,
            specification=category_template_dict(existing),
        )


def _brand_template_conflict(db: Session, company_id: int, category_id: Optional[int], name: str) -> None:
    # NULL category_id is a scope of its own, so the unique check lives here
    q = db.query(BrandSpecification).filter(
        BrandSpecification.company_id == company_id,
        func.lower(BrandSpecification.name) == name.lower(),
    )
    if category_id:
        q = q.filter(BrandSpecification.category_id == category_id)
    else:
        q = q.filter(BrandSpecification.category_id.is_(None))
    existing = q.first()
    if existing:
        raise Conflict(
            "Specification with this name already exists for this brand and category",
            conflict=True,
            specification=brand_template_dict(existing),
        )


# ===========================================================
# Category templates
# ===========================================================
@router.get("/category-specifications")
def category_templates(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(CategorySpecification)
    if category_id:
        q = q.filter(CategorySpecification.category_id == category_id)
    rows = q.order_by(
        CategorySpecification.category_id.asc(),
        CategorySpecification.position.asc(),
        CategorySpecification.created_at.asc(),
        CategorySpecification.id.asc(),
    ).all()
    return {"specifications": [category_template_dict(s) for s in rows]}


@router.post("/category-specifications", status_code=201)
def category_template_create(body: TemplateBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    name = (body.name or "").strip()
    if not body.category_id or not name or not body.value_type:
        raise BadRequest("Category ID, name, and value type are required")
    _get_or_404(db, ItemCategory, body.category_id, "Category")
    _category_template_conflict(db, body.category_id, name)

    spec = CategorySpecification(
        category_id=body.category_id,
        name=name,
        value_type=_value_type(body.value_type),
        options=parse_options(body.options),
        icon=body.icon or None,
        position=body.order,
        is_required=body.is_required is True,
    )
    db.add(spec)
    db.commit()
    db.refresh(spec)
    log.info("admin %s added template %r to category %s", admin.id, spec.name, spec.category_id)
    return {"specification": category_template_dict(spec)}


@router.put("/category-specifications")
def category_templates_replace(
    body: TemplateBulkBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    """
    Replace every template of a category with the given list. Entries without
    a name or a value type, and repeated names, are skipped.
    """
    if not body.category_id or body.specifications is None:
        raise BadRequest("Category ID and specifications array are required")
    cat = _get_or_404(db, ItemCategory, body.category_id, "Category")

    created = []
    with unit_of_work(db):
        db.query(CategorySpecification).filter(
            CategorySpecification.category_id == cat.id
        ).delete(synchronize_session=False)
        db.expire(cat, ["specification_templates"])

        seen = set()
        for entry in body.specifications:
            name = (entry.name or "").strip()
            vt = (entry.value_type or "").strip().lower()
            if not name or vt not in VALUE_TYPES:
                log.warning("skipping template without name or valid value type in category %s", cat.id)
                continue
            if name.lower() in seen:
                log.warning("skipping duplicate template %r in category %s", name, cat.id)
                continue
            seen.add(name.lower())
            spec = CategorySpecification(
                category_id=cat.id,
                name=name,
                value_type=vt,
                options=parse_options(entry.options),
                icon=entry.icon or None,
                position=entry.order,
                is_required=entry.is_required is True,
            )
            db.add(spec)
            created.append(spec)

        if not created and body.specifications:
            raise BadRequest("No valid specifications to save", field="specifications")
        db.flush()

    log.info("admin %s replaced templates of category %s (%s)", admin.id, cat.id, len(created))
    return {"specifications": [category_template_dict(s) for s in created]}


@router.patch("/category-specifications/{spec_id}")
def category_template_update(
    spec_id: int, body: TemplateBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    spec = _get_or_404(db, CategorySpecification, spec_id, "Specification")
    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise BadRequest("Name is required", field="name")
        _category_template_conflict(db, spec.category_id, name, exclude_id=spec.id)
        spec.name = name
    if body.value_type is not None:
        spec.value_type = _value_type(body.value_type)
    if "options" in body.model_fields_set:
        spec.options = parse_options(body.options)
    if body.icon is not None:
        spec.icon = body.icon or None
    if "order" in body.model_fields_set:
        spec.position = body.order
    if body.is_required is not None:
        spec.is_required = body.is_required
    db.commit()
    db.refresh(spec)
    return {"specification": category_template_dict(spec)}


@router.delete("/category-specifications/{spec_id}")
def category_template_delete(spec_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    spec = _get_or_404(db, CategorySpecification, spec_id, "Specification")
    db.delete(spec)
    db.commit()
    return {"success": True}


# ===========================================================
# Brand templates
# ===========================================================
@router.get("/brand-specifications")
def brand_templates(
    company_id: Optional[int] = Query(None, alias="companyId"),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not company_id:
        raise BadRequest("Company ID is required", field="companyId")
    q = db.query(BrandSpecification).filter(BrandSpecification.company_id == company_id)
    if category_id:
        q = q.filter(BrandSpecification.category_id == category_id)
    rows = q.order_by(
        BrandSpecification.position.asc(),
        BrandSpecification.created_at.asc(),
        BrandSpecification.id.asc(),
    ).all()
    return {"specifications": [brand_template_dict(s) for s in rows]}


@router.post("/brand-specifications", status_code=201)
def brand_template_create(body: TemplateBody, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    name = (body.name or "").strip()
    if not body.company_id or not name or not body.value_type:
        raise BadRequest("Company ID, name, and value type are required")
    _get_or_404(db, Company, body.company_id, "Brand")
    if body.category_id:
        _get_or_404(db, ItemCategory, body.category_id, "Category")
    _brand_template_conflict(db, body.company_id, body.category_id, name)

    spec = BrandSpecification(
        company_id=body.company_id,
        category_id=body.category_id or None,
        name=name,
        value_type=_value_type(body.value_type),
        options=parse_options(body.options),
        icon=body.icon or None,
        position=body.order,
        is_required=body.is_required is True,
    )
    db.add(spec)
    db.commit()
    db.refresh(spec)
    log.info("admin %s added template %r to brand %s", admin.id, spec.name, spec.company_id)
    return {"specification": brand_template_dict(spec)}


@router.delete("/brand-specifications/{spec_id}")
def brand_template_delete(spec_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    spec = _get_or_404(db, BrandSpecification, spec_id, "Brand specification")
    db.delete(spec)
    db.commit()
    return {"message": "Brand specification deleted successfully"}


# ===========================================================
# Common specs (suggestions for new templates)
# ===========================================================
def common_specs(db: Session) -> list[dict]:
    """One entry per distinct template name, first definition wins."""
    rows = db.query(CategorySpecification).order_by(CategorySpecification.id.asc()).all()
    out: dict[str, dict] = {}
    for s in rows:
        if s.name in out:
            continue
        entry = {"name": s.name, "value_type": s.value_type}
        if s.options:
            entry["options"] = list(s.options)
        if s.icon:
            entry["icon"] = s.icon
        out[s.name] = entry
    if not out:
        return [dict(d) for d in DEFAULT_COMMON_SPECS]
    return list(out.values())


@router.get("/configurations/common-specs")
def common_specs_route(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"common_specs": common_specs(db)}
