# sellfast/catalog.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .database import get_db
from .models import Company, Item, ItemCategory, Specification

router = APIRouter(prefix="/api", tags=["catalog"])


def category_dict(c: ItemCategory) -> dict:
    return {"id": c.id, "name": c.name, "description": c.description, "icon": c.icon}


def company_dict(c: Company) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "icon": c.icon,
        "origin": c.origin,
        "website": c.website,
        "notes": c.notes,
    }


def specification_dict(s: Specification) -> dict:
    return {
        "id": s.id,
        "item_id": s.item_id,
        "name": s.name,
        "value_type": s.value_type,
        "options": s.options,
        "icon": s.icon,
        "position": s.position,
        "is_required": s.is_required,
    }


def item_dict(i: Item) -> dict:
    return {
        "id": i.id,
        "name": i.name,
        "category_id": i.category_id,
        "category": category_dict(i.category) if i.category else None,
        "companies": [{"id": c.id, "name": c.name} for c in i.companies],
        "specifications": [specification_dict(s) for s in i.specifications],
    }


@router.get("/categories")
def categories(db: Session = Depends(get_db)):
    rows = db.query(ItemCategory).order_by(ItemCategory.name.asc()).all()
    return {"categories": [category_dict(c) for c in rows]}


@router.get("/companies")
def companies(db: Session = Depends(get_db)):
    rows = db.query(Company).order_by(Company.name.asc()).all()
    return {"companies": [company_dict(c) for c in rows]}


@router.get("/items")
def items(category_id: Optional[int] = Query(None), db: Session = Depends(get_db)):
    q = db.query(Item)
    if category_id:
        q = q.filter(Item.category_id == category_id)
    return {"items": [item_dict(i) for i in q.order_by(Item.name.asc()).all()]}


@router.get("/specifications")
def specifications(item_id: Optional[int] = Query(None), db: Session = Depends(get_db)):
    q = db.query(Specification)
    if item_id:
        q = q.filter(Specification.item_id == item_id)
    rows = q.order_by(Specification.item_id.asc(), Specification.position.asc(), Specification.id.asc()).all()
    return {"specifications": [specification_dict(s) for s in rows]}
