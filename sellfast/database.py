# sellfast/database.py
import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# =========================================================
# 1) Read the database URL + normalize the Postgres driver
# =========================================================
def normalize_db_url(url: str) -> str:
    """Point any legacy Postgres URL at the psycopg (v3) driver."""
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://") and "+psycopg" not in url:
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


DB_URL = normalize_db_url(os.getenv("DATABASE_URL", "sqlite:///./sellfast.db"))

# =========================================================
# 2) Create Engine and Session
# =========================================================
_engine_kwargs = {"pool_pre_ping": True}
if DB_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    # In-memory SQLite lives in a single connection shared by every thread
    if DB_URL in ("sqlite://", "sqlite:///:memory:"):
        _engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DB_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# The only Base used throughout the project
Base = declarative_base()


def get_db():
    """Dependency to inject DB session inside routes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# 3) Unit of work
# =========================================================
@contextmanager
def unit_of_work(db: Session):
    """
    Run a block of writes as one transaction: commit when the block finishes,
    roll back everything (and re-raise) on the first exception.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
