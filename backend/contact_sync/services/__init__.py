"""Contact tagging and segmentation services."""

from contact_sync.services.contact_sync import ContactSyncService, create_contact_sync_service
from contact_sync.services.reconciliation import BatchReconciliationService, create_reconciliation_service
from contact_sync.services.segmentation import SegmentationService, create_segmentation_service
from contact_sync.services.tag_application import TagApplicationService, create_tag_application_service
from contact_sync.services.tag_store import TagStore, create_tag_store

__all__ = [
    "BatchReconciliationService",
    "ContactSyncService",
    "SegmentationService",
    "TagApplicationService",
    "TagStore",
    "create_contact_sync_service",
    "create_reconciliation_service",
    "create_segmentation_service",
    "create_tag_application_service",
    "create_tag_store",
]
