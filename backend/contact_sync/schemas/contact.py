"""
Pydantic schemas for contacts, their custom fields and sync results.

ContactCustomFields is the typed view over the `custom_fields` JSON column.
Lists in it only ever grow; unknown keys written by other services are kept.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class ContactStatus(str, Enum):
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    BOUNCED = "bounced"
    COMPLAINED = "complained"


class ContactSource(str, Enum):
    FOLLOW_GATE = "follow_gate"
    PURCHASE = "purchase"
    COURSE_ENROLLMENT = "course_enrollment"
    PLATFORM_USER = "platform_user"
    CUSTOMER_SYNC = "customer_sync"
    STUDENT_SYNC = "student_sync"
    IMPORT = "import"
    MANUAL = "manual"


class ActivityType(str, Enum):
    SUBSCRIBED = "subscribed"
    EMAIL_SENT = "email_sent"
    EMAIL_OPENED = "email_opened"
    EMAIL_CLICKED = "email_clicked"
    EMAIL_BOUNCED = "email_bounced"
    CUSTOM_FIELD_UPDATED = "custom_field_updated"
    CAMPAIGN_ENROLLED = "campaign_enrolled"
    TAG_ADDED = "tag_added"


class EngagementEvent(str, Enum):
    OPENED = "email_opened"
    CLICKED = "email_clicked"
    BOUNCED = "email_bounced"

    @classmethod
    def parse(cls, value: str) -> "EngagementEvent":
        """Accept both `email_opened` and the short `opened` form."""
        normalized = value if value.startswith("email_") else f"email_{value}"
        return cls(normalized)


class PurchaseRecord(BaseModel):
    """One purchase appended to a contact's history."""
    product_id: Optional[str] = None
    course_id: Optional[str] = None
    amount: float
    timestamp: datetime


class ContactCustomFields(BaseModel):
    """Typed custom fields bag stored on each contact."""
    model_config = ConfigDict(extra="allow")

    purchase_points: int = 0
    total_points: int = 0
    enrolled_courses: List[str] = Field(default_factory=list)
    follow_gate_products: List[str] = Field(default_factory=list)
    purchases: List[PurchaseRecord] = Field(default_factory=list)
    student_level: Optional[str] = None
    last_activity: Optional[datetime] = None
    last_purchase_at: Optional[datetime] = None


class ContactCreate(BaseModel):
    """Explicit contact creation request."""
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    source: ContactSource = ContactSource.MANUAL
    source_product_id: Optional[str] = None
    source_course_id: Optional[str] = None
    tag_names: List[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Outcome of one event handler invocation."""
    contact_id: Optional[str] = None
    created: bool = False
    tags_added: List[str] = Field(default_factory=list)
    skill_level_updated: Optional[bool] = None


class ContactImportRow(BaseModel):
    """
    One row of a bulk import.

    The email is validated per row by the import itself so a single bad
    address is reported instead of rejecting the whole upload.
    """
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    tag_names: List[str] = Field(default_factory=list)


class BulkImportRequest(BaseModel):
    contacts: List[ContactImportRow] = Field(..., min_length=1)
    source: ContactSource = ContactSource.IMPORT


class BulkImportResult(BaseModel):
    imported: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)
