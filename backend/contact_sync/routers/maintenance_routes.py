"""
Maintenance Routes
Operator-triggered tag backfill jobs. Paginated jobs process one page per
request; call again with the returned next_cursor until done is true.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from contact_sync.auth import require_admin_key
from contact_sync.database import get_db
from contact_sync.exceptions import InvalidCursor, ReferencedEntityNotFound
from contact_sync.schemas import (
    BatchPageRequest,
    BatchResult,
    BulkImportRequest,
    BulkImportResult,
    ContactEnrollmentTagResult,
    ContactEnrollmentsRequest,
    ManualTagRequest,
    ProductPurchasersRequest,
    SyncResult,
)
from contact_sync.services.contact_sync import ContactSyncService
from contact_sync.services.reconciliation import BatchReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/stores/{store_id}/maintenance",
    tags=["Maintenance"],
    dependencies=[Depends(require_admin_key)]
)


@router.post("/retag", response_model=BatchResult)
def retag_all_contacts(
    store_id: str,
    request: BatchPageRequest,
    db: Session = Depends(get_db)
):
    try:
        result = BatchReconciliationService(db).retag_all_contacts(
            store_id, cursor=request.cursor, batch_size=request.batch_size
        )
    except InvalidCursor as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    return result


@router.post("/tag-enrolled-users", response_model=BatchResult)
def tag_enrolled_users(
    store_id: str,
    request: BatchPageRequest,
    db: Session = Depends(get_db)
):
    try:
        result = BatchReconciliationService(db).tag_enrolled_users_with_course_tags(
            store_id, cursor=request.cursor, batch_size=request.batch_size
        )
    except InvalidCursor as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    return result


@router.post("/tag-product-purchasers", response_model=BatchResult)
def tag_product_purchasers(
    store_id: str,
    request: ProductPurchasersRequest,
    db: Session = Depends(get_db)
):
    try:
        result = BatchReconciliationService(db).tag_product_purchasers(
            store_id, request.product_id, cursor=request.cursor, batch_size=request.batch_size
        )
    except ReferencedEntityNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidCursor as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    return result


@router.post("/tag-contact-enrollments", response_model=ContactEnrollmentTagResult)
def tag_contact_with_enrollments(
    store_id: str,
    request: ContactEnrollmentsRequest,
    db: Session = Depends(get_db)
):
    try:
        result = BatchReconciliationService(db).tag_contact_with_enrollments(store_id, request.email)
    except ReferencedEntityNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    db.commit()
    return result


@router.post("/manual-tag", response_model=SyncResult)
def manual_tag_contact(
    store_id: str,
    request: ManualTagRequest,
    db: Session = Depends(get_db)
):
    result = ContactSyncService(db).manual_tag_contact(store_id, request.email, request.tags)
    if result.contact_id is None:
        raise HTTPException(status_code=404, detail="Contact not found")

    db.commit()
    logger.info(f"Manually tagged {request.email} in store {store_id} with {request.tags}")
    return result


@router.post("/import", response_model=BulkImportResult)
def bulk_import_contacts(
    store_id: str,
    request: BulkImportRequest,
    db: Session = Depends(get_db)
):
    """Create contacts from a list; known emails are skipped and bad rows reported."""
    result = ContactSyncService(db).bulk_import_contacts(store_id, request.contacts, source=request.source)

    db.commit()
    return result
