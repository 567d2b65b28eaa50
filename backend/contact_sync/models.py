"""
SQLAlchemy ORM models.

Contact, tag and activity tables are owned by the contact sync services.
The catalog/commerce tables (users, products, courses, enrollments,
customers, purchases) are written by other parts of the platform and only
read here.
"""

from sqlalchemy import (
    Column, String, Integer, Float, Text, DateTime, JSON, Index,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from contact_sync.database import Base
from contact_sync.schemas.contact import ContactCustomFields
from datetime import datetime, timezone
import uuid


# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp used for every datetime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


# ============================================================================
# CONTACT SEGMENTATION MODELS
# ============================================================================

class EmailContact(Base):
    """A lead or customer of one store, unique per (store, email)."""
    __tablename__ = "email_contacts"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(255), nullable=False, index=True)
    email = Column(String(320), nullable=False)  # Always lower-cased
    first_name = Column(String(255))
    last_name = Column(String(255))
    status = Column(String(50), nullable=False, default="subscribed")
    subscribed_at = Column(DateTime, default=utcnow)

    # Ordered list of EmailTag ids, never contains duplicates
    tag_ids = Column(JSONType, nullable=False, default=list)

    # Attribution (first touch)
    source = Column(String(50))
    source_product_id = Column(String(36))
    source_course_id = Column(String(36))
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"))
    user_id = Column(String(36))

    # Email engagement
    emails_sent = Column(Integer, nullable=False, default=0)
    emails_opened = Column(Integer, nullable=False, default=0)
    emails_clicked = Column(Integer, nullable=False, default=0)
    last_opened_at = Column(DateTime)
    last_clicked_at = Column(DateTime)
    engagement_score = Column(Integer)  # 0-100, None until first scored event

    custom_fields = Column(JSONType, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("store_id", "email", name="uq_email_contacts_store_email"),
        Index("ix_email_contacts_store_created", "store_id", "created_at", "id"),
        CheckConstraint(
            "status IN ('subscribed', 'unsubscribed', 'bounced', 'complained')",
            name="chk_email_contact_status"
        ),
    )

    def get_custom_fields(self) -> ContactCustomFields:
        return ContactCustomFields.model_validate(self.custom_fields or {})

    def set_custom_fields(self, fields: ContactCustomFields):
        # Assign a fresh dict so the JSON column is flagged dirty
        self.custom_fields = fields.model_dump(mode="json", exclude_none=True)

    @property
    def display_name(self):
        if not self.first_name:
            return None
        return f"{self.first_name} {self.last_name or ''}".strip()

    def __repr__(self):
        return f"<EmailContact(id={self.id}, store_id='{self.store_id}', email='{self.email}')>"


class EmailTag(Base):
    """
    A `namespace:value` label scoped to one store.

    contact_count is the number of times the tag was newly attached to a
    contact. Nothing detaches tags, so it is never decremented.
    """
    __tablename__ = "email_tags"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    color = Column(String(16), nullable=False, default="#6B7280")
    description = Column(Text)
    contact_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("store_id", "name", name="uq_email_tags_store_name"),
    )

    def __repr__(self):
        return f"<EmailTag(id={self.id}, name='{self.name}', contact_count={self.contact_count})>"


class ContactActivity(Base):
    """Append-only audit trail of contact events."""
    __tablename__ = "email_contact_activity"

    id = Column(String(36), primary_key=True, default=new_id)
    contact_id = Column(String(36), ForeignKey("email_contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(String(255), nullable=False, index=True)
    activity_type = Column(String(50), nullable=False)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_contact_activity_contact_timestamp", "contact_id", "timestamp"),
    )


class ReconciliationCheckpoint(Base):
    """Cursor persisted between scheduled reconciliation ticks."""
    __tablename__ = "reconciliation_checkpoints"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(255), nullable=False)
    job_name = Column(String(100), nullable=False)
    cursor = Column(Text)
    pages_run = Column(Integer, nullable=False, default=0)
    last_run_at = Column(DateTime)
    completed_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("store_id", "job_name", name="uq_reconciliation_store_job"),
    )


# ============================================================================
# PLATFORM RECORDS (read-only here)
# ============================================================================

class User(Base):
    """Platform user account."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), index=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=utcnow)


class DigitalProduct(Base):
    """Sample pack, preset pack, beat lease, etc."""
    __tablename__ = "digital_products"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    product_type = Column(String(50))
    product_category = Column(String(50))
    genre = Column(JSONType, default=list)
    price = Column(Float, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    slug = Column(String(255))
    description = Column(Text)
    category = Column(String(255))
    skill_level = Column(String(50))
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    course_id = Column(String(36), nullable=False, index=True)
    progress = Column(Float)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_enrollments_course_created", "course_id", "created_at", "id"),
    )


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255))
    email = Column(String(320), nullable=False)
    type = Column(String(50), nullable=False, default="lead")
    status = Column(String(50), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(String(36), primary_key=True, default=new_id)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    store_id = Column(String(255), nullable=False, index=True)
    product_id = Column(String(36), index=True)
    course_id = Column(String(36))
    amount = Column(Float, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="completed")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'completed', 'refunded')", name="chk_purchase_status"),
    )
