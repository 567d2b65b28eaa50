"""Pydantic schemas for request/response validation."""

from contact_sync.schemas.contact import (
    ActivityType,
    BulkImportRequest,
    BulkImportResult,
    ContactCreate,
    ContactCustomFields,
    ContactImportRow,
    ContactSource,
    ContactStatus,
    EngagementEvent,
    PurchaseRecord,
    SyncResult,
)
from contact_sync.schemas.segment import (
    ContactStats,
    ContactsByTagsRequest,
    PrebuiltSegment,
    PrebuiltSegmentsResult,
    SegmentContact,
    SegmentSummary,
)
from contact_sync.schemas.maintenance import (
    BatchPageRequest,
    BatchResult,
    ContactEnrollmentTagResult,
    ContactEnrollmentsRequest,
    ManualTagRequest,
    ProductPurchasersRequest,
)

__all__ = [
    "ActivityType",
    "BatchPageRequest",
    "BatchResult",
    "BulkImportRequest",
    "BulkImportResult",
    "ContactCreate",
    "ContactCustomFields",
    "ContactEnrollmentTagResult",
    "ContactEnrollmentsRequest",
    "ContactImportRow",
    "ContactSource",
    "ContactStats",
    "ContactStatus",
    "ContactsByTagsRequest",
    "EngagementEvent",
    "ManualTagRequest",
    "PrebuiltSegment",
    "PrebuiltSegmentsResult",
    "ProductPurchasersRequest",
    "PurchaseRecord",
    "SegmentContact",
    "SegmentSummary",
    "SyncResult",
]
