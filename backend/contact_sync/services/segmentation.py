"""Tag-based segmentation queries and prebuilt segment templates."""

import logging
from collections import namedtuple
from typing import List, Optional

from sqlalchemy.orm import Session

from contact_sync.config import settings
from contact_sync.models import EmailContact
from contact_sync.schemas.contact import ContactStatus
from contact_sync.schemas.segment import (
    ContactStats,
    PrebuiltSegment,
    PrebuiltSegmentsResult,
    SegmentContact,
    SegmentSummary,
)
from contact_sync.services.tag_store import DEFAULT_TAG_COLOR, TagStore

logger = logging.getLogger(__name__)


SegmentTemplate = namedtuple("SegmentTemplate", ["name", "description", "tag_pattern", "color"])

PREBUILT_SEGMENT_TEMPLATES = (
    SegmentTemplate("Hot Leads", "Highly engaged contacts (score >= 80)", "engagement:hot", "#EF4444"),
    SegmentTemplate("Warm Leads", "Moderately engaged contacts (score >= 50)", "engagement:warm", "#F59E0B"),
    SegmentTemplate("Customers", "Contacts who have made a purchase", "customer", "#10B981"),
    SegmentTemplate("Beginners", "Contacts interested in beginner content", "skill:beginner", "#3B82F6"),
    SegmentTemplate("Intermediate", "Contacts interested in intermediate content", "skill:intermediate", "#6366F1"),
    SegmentTemplate("Advanced", "Contacts interested in advanced content", "skill:advanced", "#8B5CF6"),
    SegmentTemplate("Techno Producers", "Contacts interested in techno music", "genre:techno", "#EC4899"),
    SegmentTemplate("Hip-Hop Producers", "Contacts interested in hip-hop music", "genre:hip-hop", "#14B8A6"),
    SegmentTemplate("House Producers", "Contacts interested in house music", "genre:house", "#F97316"),
    SegmentTemplate("EDM Producers", "Contacts interested in EDM", "genre:edm", "#A855F7"),
    SegmentTemplate("Sample Collectors", "Contacts interested in samples", "interest:samples", "#06B6D4"),
    SegmentTemplate("Preset Hunters", "Contacts interested in presets", "interest:presets", "#84CC16"),
    SegmentTemplate("Course Students", "Contacts interested in learning", "interest:learning", "#0EA5E9"),
    SegmentTemplate("Mixing Enthusiasts", "Contacts interested in mixing", "interest:mixing", "#D946EF"),
)

SEGMENT_DISPLAY_NAMES = {template.tag_pattern: template.name for template in PREBUILT_SEGMENT_TEMPLATES}

MATCH_MODES = ("all", "any")


class SegmentationService:
    """Materialize audiences from contact tags."""

    def __init__(self, db: Session):
        self.db = db
        self.tag_store = TagStore(db)

    @staticmethod
    def matches(contact_tag_ids: List[str], tag_ids: List[str], mode: str,
                exclude_tag_ids: Optional[List[str]] = None) -> bool:
        """Evaluate a segment predicate against one contact's tag ids."""
        held = set(contact_tag_ids or [])

        if exclude_tag_ids and any(tag_id in held for tag_id in exclude_tag_ids):
            return False

        if not tag_ids:
            return True

        if mode == "all":
            return all(tag_id in held for tag_id in tag_ids)
        return any(tag_id in held for tag_id in tag_ids)

    def get_contacts_by_tags(
        self,
        store_id: str,
        tag_ids: List[str],
        mode: str = "all",
        exclude_tag_ids: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> List[SegmentContact]:
        """
        Subscribed contacts matching the tag predicate.

        `all` needs every tag, `any` needs one. Exclusions are applied first
        and an empty tag list matches everyone. At most SEGMENT_SCAN_LIMIT
        contacts are scanned.
        """
        if mode not in MATCH_MODES:
            raise ValueError(f"Unknown segment match mode: {mode}")

        limit = limit or settings.SEGMENT_DEFAULT_LIMIT

        contacts = self.db.query(EmailContact).filter(
            EmailContact.store_id == store_id,
            EmailContact.status == ContactStatus.SUBSCRIBED.value
        ).order_by(
            EmailContact.created_at, EmailContact.id
        ).limit(settings.SEGMENT_SCAN_LIMIT).all()

        matching = [
            contact for contact in contacts
            if self.matches(contact.tag_ids, tag_ids, mode, exclude_tag_ids)
        ]

        return [
            SegmentContact(
                contact_id=contact.id,
                email=contact.email,
                name=contact.display_name,
                engagement_score=contact.engagement_score
            )
            for contact in matching[:limit]
        ]

    def create_prebuilt_segments(self, store_id: str) -> PrebuiltSegmentsResult:
        """Ensure every template tag exists. Safe to re-run."""
        created = 0
        skipped = 0
        segments = []

        for template in PREBUILT_SEGMENT_TEMPLATES:
            tag, was_created = self.tag_store.create_tag_if_absent(
                store_id,
                template.tag_pattern,
                color=template.color,
                description=template.description
            )
            if was_created:
                created += 1
            else:
                skipped += 1
            segments.append(PrebuiltSegment(name=template.name, tag_id=tag.id))

        logger.info(f"Prebuilt segments for store {store_id}: created={created}, skipped={skipped}")
        return PrebuiltSegmentsResult(created=created, skipped=skipped, segments=segments)

    def get_segments_by_tag(self, store_id: str) -> List[SegmentSummary]:
        return [
            SegmentSummary(
                tag_id=tag.id,
                tag_name=tag.name,
                display_name=SEGMENT_DISPLAY_NAMES.get(tag.name, tag.name),
                description=tag.description,
                color=tag.color or DEFAULT_TAG_COLOR,
                contact_count=tag.contact_count or 0
            )
            for tag in self.tag_store.list_tags(store_id)
        ]

    def list_contacts(
        self,
        store_id: str,
        status: Optional[str] = None,
        tag_id: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[EmailContact]:
        """Newest first, optionally filtered by status and a single tag."""
        query = self.db.query(EmailContact).filter(EmailContact.store_id == store_id)
        if status:
            query = query.filter(EmailContact.status == status)

        contacts = query.order_by(EmailContact.created_at.desc(), EmailContact.id.desc()).all()

        if tag_id:
            contacts = [c for c in contacts if tag_id in (c.tag_ids or [])]
        if limit:
            contacts = contacts[:limit]
        return contacts

    def get_contact_stats(self, store_id: str) -> ContactStats:
        contacts = self.db.query(EmailContact).filter(EmailContact.store_id == store_id).all()

        scores = [c.engagement_score for c in contacts if c.engagement_score is not None]
        avg_engagement = sum(scores) / len(scores) if scores else 0

        return ContactStats(
            total=len(contacts),
            subscribed=sum(1 for c in contacts if c.status == ContactStatus.SUBSCRIBED.value),
            unsubscribed=sum(1 for c in contacts if c.status == ContactStatus.UNSUBSCRIBED.value),
            bounced=sum(1 for c in contacts if c.status == ContactStatus.BOUNCED.value),
            avg_engagement=round(avg_engagement)
        )


def create_segmentation_service(db: Session) -> SegmentationService:
    """Factory function to create segmentation service"""
    return SegmentationService(db)
