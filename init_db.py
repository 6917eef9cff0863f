# init_db.py
"""
Create every table and seed the first admin account plus a few categories.

    python init_db.py

ADMIN_EMAIL / ADMIN_PASSWORD come from the environment (or .env).
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import os

from sellfast.database import Base, SessionLocal, engine
from sellfast.models import ItemCategory, User
from sellfast.utils import hash_password

log = logging.getLogger("init_db")

DEFAULT_CATEGORIES = (
    ("Mobile Phones", "Smartphones and feature phones"),
    ("Laptops", "Notebooks and ultrabooks"),
    ("Tablets", None),
    ("Cameras", None),
    ("Home Appliances", None),
)


def seed_admin(db, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        if user.role != "ADMIN":
            user.role = "ADMIN"
            log.info("promoted %s to ADMIN", email)
        return user
    user = User(
        email=email,
        name="Administrator",
        password_hash=hash_password(password),
        provider="credentials",
        role="ADMIN",
        is_active=True,
        coins=0,
    )
    db.add(user)
    log.info("created admin %s", email)
    return user


def seed_categories(db) -> int:
    existing = {name for (name,) in db.query(ItemCategory.name).all()}
    added = 0
    for name, description in DEFAULT_CATEGORIES:
        if name not in existing:
            db.add(ItemCategory(name=name, description=description))
            added += 1
    return added


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    log.info("creating tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        email = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
        password = os.getenv("ADMIN_PASSWORD") or ""
        if email and password:
            seed_admin(db, email, password)
        else:
            log.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set, skipping admin account")
        added = seed_categories(db)
        db.commit()
        log.info("tables ready, %s categories added", added)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
