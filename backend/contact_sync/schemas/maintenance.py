"""Schemas for operator-triggered reconciliation jobs."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class BatchResult(BaseModel):
    """
    Result of one page of a reconciliation job.

    Callers persist `next_cursor` and call again until `done` is true.
    """
    processed: int = 0
    tags_added: int = 0
    errors: int = 0
    next_cursor: Optional[str] = None
    done: bool = False
    users_tagged: Optional[int] = None
    contacts_tagged: Optional[int] = None


class BatchPageRequest(BaseModel):
    cursor: Optional[str] = None
    batch_size: Optional[int] = Field(default=None, ge=1, le=500)


class ProductPurchasersRequest(BatchPageRequest):
    product_id: str


class ContactEnrollmentsRequest(BaseModel):
    email: EmailStr


class ContactEnrollmentTagResult(BaseModel):
    contact_id: str
    courses_tagged: int
    tags_added: List[str] = Field(default_factory=list)


class ManualTagRequest(BaseModel):
    email: EmailStr
    tags: List[str] = Field(..., min_length=1)
