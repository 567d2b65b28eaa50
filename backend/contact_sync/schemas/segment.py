"""
Pydantic schemas for tag-based segments
These are for API request/response validation, NOT database models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal


class SegmentContact(BaseModel):
    """Projection of a contact returned by segment queries"""
    contact_id: str
    email: str
    name: Optional[str] = None
    engagement_score: Optional[int] = None


class ContactsByTagsRequest(BaseModel):
    tag_ids: List[str] = Field(default_factory=list)
    mode: Literal["all", "any"] = "all"
    exclude_tag_ids: Optional[List[str]] = None
    limit: Optional[int] = Field(default=None, ge=1)


class SegmentSummary(BaseModel):
    """A tag viewed as a segment"""
    tag_id: str
    tag_name: str
    display_name: str
    description: Optional[str] = None
    color: str
    contact_count: int


class PrebuiltSegment(BaseModel):
    name: str
    tag_id: str


class PrebuiltSegmentsResult(BaseModel):
    created: int
    skipped: int
    segments: List[PrebuiltSegment]


class ContactStats(BaseModel):
    total: int
    subscribed: int
    unsubscribed: int
    bounced: int
    avg_engagement: int
