"""
Segment Routes
Read tag-based audiences and set up the prebuilt segment tags
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from contact_sync.auth import require_admin_key
from contact_sync.database import get_db
from contact_sync.schemas import (
    ContactStats,
    ContactsByTagsRequest,
    PrebuiltSegmentsResult,
    SegmentContact,
    SegmentSummary,
)
from contact_sync.services.segmentation import SegmentationService

router = APIRouter(
    prefix="/api/v1/stores/{store_id}/segments",
    tags=["Segments"],
    dependencies=[Depends(require_admin_key)]
)


@router.get("/", response_model=List[SegmentSummary])
def list_segments(store_id: str, db: Session = Depends(get_db)):
    """Every tag of the store with its segment display name and contact count."""
    return SegmentationService(db).get_segments_by_tag(store_id)


@router.post("/prebuilt", response_model=PrebuiltSegmentsResult)
def create_prebuilt_segments(store_id: str, db: Session = Depends(get_db)):
    result = SegmentationService(db).create_prebuilt_segments(store_id)
    db.commit()
    return result


@router.post("/contacts", response_model=List[SegmentContact])
def get_contacts_by_tags(
    store_id: str,
    request: ContactsByTagsRequest,
    db: Session = Depends(get_db)
):
    """
    Materialize a recipient list.

    - mode=all: contact holds every tag
    - mode=any: contact holds at least one tag
    - exclude_tag_ids: contacts holding any of these are dropped first
    """
    try:
        return SegmentationService(db).get_contacts_by_tags(
            store_id=store_id,
            tag_ids=request.tag_ids,
            mode=request.mode,
            exclude_tag_ids=request.exclude_tag_ids,
            limit=request.limit
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/stats", response_model=ContactStats)
def get_contact_stats(store_id: str, db: Session = Depends(get_db)):
    return SegmentationService(db).get_contact_stats(store_id)
