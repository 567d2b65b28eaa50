"""Get-or-create store for per-store contact tags."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contact_sync.models import EmailTag, utcnow

logger = logging.getLogger(__name__)


DEFAULT_TAG_COLOR = "#6B7280"  # Gray

# Checked in order; first matching prefix wins
TAG_PREFIX_COLORS = (
    ("product:", "#EC4899"),   # Pink
    ("course:", "#8B5CF6"),    # Purple
    ("genre:", "#8B5CF6"),     # Purple
    ("interest:", "#3B82F6"),  # Blue
    ("skill:", "#10B981"),     # Green
)

CUSTOMER_TAG_COLOR = "#F59E0B"  # Amber


class TagStore:
    """Resolve tag names to ids, creating tags on first use."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def tag_color_for(tag_name: str) -> str:
        if tag_name == "customer":
            return CUSTOMER_TAG_COLOR

        for prefix, color in TAG_PREFIX_COLORS:
            if tag_name.startswith(prefix):
                return color

        return DEFAULT_TAG_COLOR

    @staticmethod
    def tag_description_for(tag_name: str) -> str:
        if tag_name.startswith("product:"):
            product_name = tag_name[len("product:"):].replace("-", " ")
            return f"Purchased: {product_name}"
        if tag_name.startswith("course:"):
            course_name = tag_name[len("course:"):].replace("-", " ")
            return f"Enrolled in: {course_name}"
        return f"Auto-generated tag: {tag_name}"

    def get_tag(self, tag_id: str) -> Optional[EmailTag]:
        return self.db.get(EmailTag, tag_id)

    def get_tag_by_name(self, store_id: str, tag_name: str) -> Optional[EmailTag]:
        return self.db.query(EmailTag).filter(
            and_(
                EmailTag.store_id == store_id,
                EmailTag.name == tag_name
            )
        ).first()

    def list_tags(self, store_id: str) -> List[EmailTag]:
        return self.db.query(EmailTag).filter(
            EmailTag.store_id == store_id
        ).order_by(EmailTag.created_at, EmailTag.id).all()

    def create_tag_if_absent(
        self,
        store_id: str,
        tag_name: str,
        color: Optional[str] = None,
        description: Optional[str] = None
    ) -> Tuple[EmailTag, bool]:
        """
        Return (tag, created).

        The insert runs in a savepoint. If another transaction created the
        same (store, name) first, the unique constraint fires, the savepoint
        is rolled back and the existing row is returned instead.
        """
        existing = self.get_tag_by_name(store_id, tag_name)
        if existing:
            return existing, False

        now = utcnow()
        tag = EmailTag(
            store_id=store_id,
            name=tag_name,
            color=color or self.tag_color_for(tag_name),
            description=description or self.tag_description_for(tag_name),
            contact_count=0,
            created_at=now,
            updated_at=now
        )

        try:
            with self.db.begin_nested():
                self.db.add(tag)
                self.db.flush()
        except IntegrityError:
            logger.info(f"Tag '{tag_name}' created concurrently in store {store_id}, re-reading")
            existing = self.get_tag_by_name(store_id, tag_name)
            if existing is None:
                raise
            return existing, False

        logger.debug(f"Created tag '{tag_name}' in store {store_id}")
        return tag, True

    def get_or_create_tag(self, store_id: str, tag_name: str) -> str:
        """Return the id of the (store, name) tag, creating it if needed."""
        tag, _ = self.create_tag_if_absent(store_id, tag_name)
        return tag.id


def create_tag_store(db: Session) -> TagStore:
    """Factory function to create tag store"""
    return TagStore(db)
