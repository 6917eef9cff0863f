import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "0"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from sellfast.auth import issue_token
from sellfast.database import Base, SessionLocal, engine
from sellfast.main import app
from sellfast.models import (
    Company, Item, ItemCategory, Listing, Specification, User,
)
from sellfast.utils import hash_password

PASSWORD = "secret123"
# bcrypt is slow; hash once for every seeded account
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="USER", coins=0, name=None, email=None, is_active=True, **kw):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"user{n}@example.com",
            name=name or f"User {n}",
            password_hash=PASSWORD_HASH,
            role=role,
            coins=coins,
            is_active=is_active,
            **kw,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {issue_token(user.id)}"}


@pytest.fixture
def auth():
    return auth_headers


@pytest.fixture
def catalog(db):
    cat = ItemCategory(name="Mobile Phones")
    brand = Company(name="Acme", slug="acme")
    item = Item(name="Acme Phone X", category=cat, companies=[brand])
    spec = Specification(item=item, name="Storage", value_type="select", options=["64GB", "128GB"])
    db.add_all([cat, brand, item, spec])
    db.commit()
    return {"category": cat, "company": brand, "item": item, "spec": spec}


@pytest.fixture
def seller(make_user):
    return make_user(role="USER", name="Seller")


@pytest.fixture
def admin(make_user):
    return make_user(role="ADMIN", name="Admin")


@pytest.fixture
def make_listing(db, catalog):
    def _make(owner, status="ACTIVE", title="Acme Phone X, barely used"):
        listing = Listing(
            user_id=owner.id,
            item_id=catalog["item"].id,
            company_id=catalog["company"].id,
            title=title,
            description="Works fine, box included",
            price=200,
            address="Main street",
            status=status,
        )
        db.add(listing)
        db.commit()
        db.refresh(listing)
        return listing

    return _make


@pytest.fixture
def listing(make_listing, seller):
    return make_listing(seller)
