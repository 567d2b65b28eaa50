"""
Tag application engine.

Every path that attaches tags to a contact goes through this service: it is
the only place EmailTag.contact_count is maintained.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from contact_sync.exceptions import ReferencedEntityNotFound
from contact_sync.models import EmailContact, EmailTag, utcnow
from contact_sync.services.activity_logger import ContactActivityLogger
from contact_sync.services.tag_store import TagStore

logger = logging.getLogger(__name__)


class TagApplicationService:
    """Idempotent many-to-many attachment of tags to contacts."""

    def __init__(self, db: Session):
        self.db = db
        self.tag_store = TagStore(db)
        self.activity_logger = ContactActivityLogger(db)

    def _attach(self, tag: EmailTag, tag_ids: List[str]) -> bool:
        """Append tag to tag_ids and bump its count. Returns False if already held."""
        if tag.id in tag_ids:
            return False

        tag_ids.append(tag.id)
        # Incremented in SQL so concurrent attaches to the same tag all count
        tag.contact_count = EmailTag.contact_count + 1
        tag.updated_at = utcnow()
        return True

    def add_tags_to_contact(
        self,
        contact_id: str,
        store_id: str,
        tag_names: List[str]
    ) -> List[str]:
        """
        Attach tags by name, creating missing tags.

        Returns the names that were newly attached. Tags the contact already
        holds are skipped and their counts are left alone. The contact row is
        only written when its tag list changed.
        """
        contact = self.db.get(EmailContact, contact_id)
        if not contact:
            logger.warning(f"Cannot tag missing contact {contact_id}")
            return []

        current_tag_ids = list(contact.tag_ids or [])
        new_tag_ids = list(current_tag_ids)
        attached = []

        for tag_name in tag_names:
            tag_id = self.tag_store.get_or_create_tag(store_id, tag_name)
            tag = self.tag_store.get_tag(tag_id)
            if tag and self._attach(tag, new_tag_ids):
                attached.append(tag_name)

        if len(new_tag_ids) != len(current_tag_ids):
            contact.tag_ids = new_tag_ids
            contact.updated_at = utcnow()
            self.db.flush()
            logger.debug(f"Contact {contact_id}: attached {attached}")

        return attached

    def add_tag_to_contact(self, contact_id: str, tag_id: str) -> bool:
        """
        Attach an existing tag by id.

        Raises ReferencedEntityNotFound for an unknown contact or tag.
        Returns True if the tag was newly attached.
        """
        contact = self.db.get(EmailContact, contact_id)
        if not contact:
            raise ReferencedEntityNotFound("Contact", contact_id)

        tag = self.tag_store.get_tag(tag_id)
        if not tag or tag.store_id != contact.store_id:
            raise ReferencedEntityNotFound("Tag", tag_id)

        new_tag_ids = list(contact.tag_ids or [])
        if not self._attach(tag, new_tag_ids):
            return False

        contact.tag_ids = new_tag_ids
        contact.updated_at = utcnow()
        self.db.flush()

        self.activity_logger.log_tag_added(
            contact_id=contact.id,
            store_id=contact.store_id,
            tag_id=tag.id,
            tag_name=tag.name
        )
        return True


def create_tag_application_service(db: Session) -> TagApplicationService:
    """Factory function to create tag application service"""
    return TagApplicationService(db)
