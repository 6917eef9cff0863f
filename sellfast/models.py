# sellfast/models.py
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (the same shape SQLite hands back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Status vocabularies
LISTING_STATUSES = ("DRAFT", "PENDING", "ACTIVE", "SOLD", "REJECTED")
BID_STATUSES = ("PENDING", "ACCEPTED", "REJECTED", "EXPIRED")
DEAL_STATUSES = ("IN_PROGRESS", "COMPLETED")
COIN_TX_TYPES = ("RECHARGE", "BID_PLACED", "BID_REFUND")
BASE_ROLES = ("USER", "BUYER", "ADMIN")


# =========================
# Users & Roles
# =========================
class CustomRole(Base):
    __tablename__ = "custom_roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    permissions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    users = relationship("User", back_populates="custom_role")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(200), unique=True, nullable=False, index=True)
    username = Column(String(40), unique=True, nullable=True, index=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    image = Column(String(500), nullable=True)
    password_hash = Column(String(255), nullable=True)
    provider = Column(String(30), nullable=False, default="credentials")

    role = Column(String(20), nullable=False, default="USER")
    custom_role_id = Column(Integer, ForeignKey("custom_roles.id"), nullable=True)

    # Denormalized running balance; every change has a CoinTransaction row
    coins = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    custom_role = relationship("CustomRole", back_populates="users")
    listings = relationship("Listing", back_populates="user")
    bids = relationship("Bid", back_populates="user")
    coin_transactions = relationship(
        "CoinTransaction",
        back_populates="user",
        order_by="CoinTransaction.created_at.desc()",
    )

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() == "ADMIN"


# =========================
# Catalogue
# =========================
class ItemCategory(Base):
    __tablename__ = "item_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(120), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    items = relationship("Item", back_populates="category")
    specification_templates = relationship(
        "CategorySpecification",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="CategorySpecification.position",
    )
    brand_specification_templates = relationship(
        "BrandSpecification", back_populates="category", cascade="all, delete-orphan"
    )


item_companies = Table(
    "item_companies",
    Base.metadata,
    Column("item_id", Integer, ForeignKey("items.id", ondelete="CASCADE"), primary_key=True),
    Column("company_id", Integer, ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True),
)


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    slug = Column(String(140), unique=True, nullable=False)
    icon = Column(String(500), nullable=True)
    origin = Column(String(120), nullable=True)
    website = Column(String(300), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    items = relationship("Item", secondary=item_companies, back_populates="companies")
    listings = relationship("Listing", back_populates="company")
    specification_templates = relationship(
        "BrandSpecification",
        back_populates="company",
        cascade="all, delete-orphan",
        order_by="BrandSpecification.position",
    )


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    category_id = Column(Integer, ForeignKey("item_categories.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    category = relationship("ItemCategory", back_populates="items")
    companies = relationship("Company", secondary=item_companies, back_populates="items")
    specifications = relationship(
        "Specification",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="Specification.position",
    )
    listings = relationship("Listing", back_populates="item")


class Specification(Base):
    __tablename__ = "specifications"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    name = Column(String(120), nullable=False)
    value_type = Column(String(20), nullable=False, default="text")  # text / number / select / boolean
    options = Column(JSON, nullable=True)
    icon = Column(String(120), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    is_required = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    item = relationship("Item", back_populates="specifications")


# Reusable specification templates admins attach to a category or a brand
class CategorySpecification(Base):
    __tablename__ = "category_specifications"
    __table_args__ = (UniqueConstraint("category_id", "name", name="uq_category_spec_name"),)

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("item_categories.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    value_type = Column(String(20), nullable=False, default="select")
    options = Column(JSON, nullable=True)
    icon = Column(String(120), nullable=True)
    position = Column(Integer, nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    category = relationship("ItemCategory", back_populates="specification_templates")


class BrandSpecification(Base):
    __tablename__ = "brand_specifications"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    # NULL = applies to the brand in every category
    category_id = Column(Integer, ForeignKey("item_categories.id"), nullable=True, index=True)
    name = Column(String(120), nullable=False)
    value_type = Column(String(20), nullable=False, default="select")
    options = Column(JSON, nullable=True)
    icon = Column(String(120), nullable=True)
    position = Column(Integer, nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    company = relationship("Company", back_populates="specification_templates")
    category = relationship("ItemCategory", back_populates="brand_specification_templates")


# =========================
# Listings
# =========================
class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False, default=0)
    address = Column(String(300), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    images = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="PENDING", index=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="listings")
    item = relationship("Item", back_populates="listings")
    company = relationship("Company", back_populates="listings")

    specifications = relationship(
        "ListingSpecification",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingSpecification.position",
    )
    bids = relationship(
        "Bid",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="Bid.amount.desc()",
    )
    deals = relationship("Deal", back_populates="listing", cascade="all, delete-orphan")
    chats = relationship("Chat", back_populates="listing", cascade="all, delete-orphan")


class ListingSpecification(Base):
    __tablename__ = "listing_specifications"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    specification_id = Column(Integer, ForeignKey("specifications.id"), nullable=False)
    value = Column(Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    listing = relationship("Listing", back_populates="specifications")
    specification = relationship("Specification", lazy="joined")


# =========================
# Bids & Coins
# =========================
class Bid(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    coins_used = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="PENDING", index=True)
    expires_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    listing = relationship("Listing", back_populates="bids")
    user = relationship("User", back_populates="bids")
    deal = relationship("Deal", back_populates="bid", uselist=False)


class CoinTransaction(Base):
    __tablename__ = "coin_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # signed: debits are negative
    type = Column(String(20), nullable=False)  # RECHARGE / BID_PLACED / BID_REFUND
    description = Column(Text, nullable=True)
    payment_method = Column(String(40), nullable=True)
    payment_id = Column(String(120), nullable=True)
    status = Column(String(20), nullable=False, default="COMPLETED")
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User", back_populates="coin_transactions")


# =========================
# Deals & Chats
# =========================
class Deal(Base):
    __tablename__ = "deals"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False)
    bid_id = Column(Integer, ForeignKey("bids.id"), nullable=False, unique=True)
    amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="IN_PROGRESS")
    is_success = Column(Boolean, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    seller = relationship("User", foreign_keys=[seller_id])
    buyer = relationship("User", foreign_keys=[buyer_id])
    listing = relationship("Listing", back_populates="deals")
    bid = relationship("Bid", back_populates="deal")
    chat = relationship("Chat", back_populates="deal", uselist=False, cascade="all, delete-orphan")


class Chat(Base):
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(Integer, ForeignKey("deals.id"), nullable=False, unique=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False)

    # One-way latch set by moderation
    blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(String(200), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, index=True)

    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    listing = relationship("Listing", back_populates="chats")
    deal = relationship("Deal", back_populates="chat")
    messages = relationship(
        "ChatMessage",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chats.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_location = Column(Boolean, nullable=False, default=False)
    is_blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    chat = relationship("Chat", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])


# =========================
# Support & account recovery
# =========================
class ContactForm(Base):
    __tablename__ = "contact_forms"

    id = Column(Integer, primary_key=True, index=True)
    # Set when the sender was signed in
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=False)
    subject = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User")
