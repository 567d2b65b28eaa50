# backend/contact_sync/services/contact_sync.py
"""
Contact Sync Service - turns business events into contact records and tags

Handled events:
- Follow-gate capture (free download behind an email wall)
- Purchase of a digital product or course
- Course enrollment
- Email engagement (opened / clicked / bounced)

Every handler follows the same flow:
1. Resolve the referenced product/course
2. Find the contact by (store, lower-cased email) or create it
3. Merge event fields into the contact (never replacing history)
4. Attach the derived tags through TagApplicationService
5. Append one ContactActivity row
"""

from typing import Optional, List
import logging
import math

from nameparser import HumanName
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from contact_sync.exceptions import ContactAlreadyExists, ReferencedEntityNotFound
from contact_sync.models import Course, DigitalProduct, EmailContact, utcnow
from contact_sync.schemas.contact import (
    BulkImportResult,
    ContactCreate,
    ContactImportRow,
    ContactSource,
    ContactStatus,
    EngagementEvent,
    PurchaseRecord,
    SyncResult,
)
from contact_sync.services.activity_logger import ContactActivityLogger
from contact_sync.services.keyword_classifier import engagement_tag, link_interest_tags
from contact_sync.services.tag_application import TagApplicationService
from contact_sync.services import tag_rules

logger = logging.getLogger(__name__)

MAX_ENGAGEMENT_SCORE = 100
MIN_ENGAGEMENT_SCORE = 0

PURCHASE_SCORE_BONUS = 20
OPEN_SCORE_BONUS = 2
CLICK_SCORE_BONUS = 5
BOUNCE_SCORE_PENALTY = 10

OPEN_POINTS = 5
CLICK_POINTS = 10

EMAIL_ADAPTER = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def split_name(name: Optional[str]) -> tuple:
    """Split a free-form name into (first, last)."""
    if not name or not name.strip():
        return None, None

    parsed = HumanName(name)
    first = parsed.first or name.strip().split(" ")[0]
    last = " ".join(part for part in (parsed.middle, parsed.last) if part)
    return first, last or None


def clamp_score(score: int) -> int:
    return min(MAX_ENGAGEMENT_SCORE, max(MIN_ENGAGEMENT_SCORE, score))


class ContactSyncService:
    """Upserts contacts from business events and tags them."""

    def __init__(self, db: Session):
        self.db = db
        self.tagger = TagApplicationService(db)
        self.activity_logger = ContactActivityLogger(db)

    # ------------------------------------------------------------------
    # Lookup / insert helpers
    # ------------------------------------------------------------------

    def get_contact_by_email(self, store_id: str, email: str) -> Optional[EmailContact]:
        return self.db.query(EmailContact).filter(
            and_(
                EmailContact.store_id == store_id,
                EmailContact.email == normalize_email(email)
            )
        ).first()

    def _insert_contact(self, contact: EmailContact) -> Optional[EmailContact]:
        """
        Insert a new contact inside a savepoint.

        Returns None when a concurrent event already inserted the same
        (store, email); the caller then re-reads and updates that row.
        """
        try:
            with self.db.begin_nested():
                self.db.add(contact)
                self.db.flush()
        except IntegrityError:
            logger.info(f"Contact {contact.email} inserted concurrently in store {contact.store_id}")
            return None

        logger.info(f"Created contact {contact.id} ({contact.email}) from {contact.source}")
        return contact

    def _find_or_insert(self, store_id: str, email: str, build_contact):
        """Return (contact, created). build_contact() is only called when no row exists."""
        contact = self.get_contact_by_email(store_id, email)
        if contact:
            return contact, False

        inserted = self._insert_contact(build_contact())
        if inserted:
            return inserted, True

        contact = self.get_contact_by_email(store_id, email)
        if contact is None:
            raise RuntimeError(f"Contact {email} vanished after insert conflict in store {store_id}")
        return contact, False

    def _new_contact(self, store_id: str, email: str, source: ContactSource, **fields) -> EmailContact:
        now = utcnow()
        return EmailContact(
            store_id=store_id,
            email=normalize_email(email),
            status=ContactStatus.SUBSCRIBED.value,
            subscribed_at=now,
            tag_ids=[],
            source=source.value,
            emails_sent=0,
            emails_opened=0,
            emails_clicked=0,
            created_at=now,
            updated_at=now,
            **fields
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def sync_from_follow_gate(
        self,
        store_id: str,
        email: str,
        product_id: str,
        name: Optional[str] = None
    ) -> SyncResult:
        """Capture a follow-gate signup for a free product."""
        product = self.db.get(DigitalProduct, product_id)
        if not product:
            raise ReferencedEntityNotFound("Product", product_id)

        tags = tag_rules.unique_tags(tag_rules.follow_gate_tags(product))
        first_name, last_name = split_name(name)
        now = utcnow()

        def build():
            contact = self._new_contact(
                store_id, email, ContactSource.FOLLOW_GATE,
                first_name=first_name,
                last_name=last_name,
                source_product_id=product_id
            )
            fields = contact.get_custom_fields()
            fields.last_activity = now
            fields.follow_gate_products = [product_id]
            contact.set_custom_fields(fields)
            return contact

        contact, created = self._find_or_insert(store_id, email, build)

        if not created:
            if not contact.source_product_id:
                contact.source_product_id = product_id
                contact.source = ContactSource.FOLLOW_GATE.value

            if first_name and not contact.first_name:
                contact.first_name = first_name
                if last_name:
                    contact.last_name = last_name

            fields = contact.get_custom_fields()
            fields.last_activity = now
            fields.follow_gate_products = fields.follow_gate_products + [product_id]
            contact.set_custom_fields(fields)
            contact.updated_at = now
            self.db.flush()

        self.tagger.add_tags_to_contact(contact.id, store_id, tags)
        self.activity_logger.log_subscribed(contact.id, store_id, product.title)

        return SyncResult(contact_id=contact.id, created=created, tags_added=tags)

    def sync_from_purchase(
        self,
        store_id: str,
        email: str,
        amount: float,
        user_id: Optional[str] = None,
        product_id: Optional[str] = None,
        course_id: Optional[str] = None
    ) -> SyncResult:
        """
        Record a completed purchase.

        A product/course id that no longer resolves only skips its tags;
        the purchase itself is still recorded.
        """
        tags = ["customer"]
        title = ""

        if product_id:
            product = self.db.get(DigitalProduct, product_id)
            if product:
                title = product.title or ""
                tags.extend(tag_rules.purchase_product_tags(product))
            else:
                logger.warning(f"Purchase references missing product {product_id}")

        if course_id:
            course = self.db.get(Course, course_id)
            if course:
                title = course.title or ""
                tags.extend(tag_rules.purchase_course_tags(course))
            else:
                logger.warning(f"Purchase references missing course {course_id}")

        tags = tag_rules.unique_tags(tags)
        points = math.floor(amount)
        now = utcnow()
        record = PurchaseRecord(
            product_id=product_id,
            course_id=course_id,
            amount=amount,
            timestamp=now
        )

        def build():
            contact = self._new_contact(
                store_id, email, ContactSource.PURCHASE,
                source_product_id=product_id,
                source_course_id=course_id,
                user_id=user_id,
                engagement_score=PURCHASE_SCORE_BONUS
            )
            fields = contact.get_custom_fields()
            fields.purchase_points = points
            fields.total_points = points
            fields.last_purchase_at = now
            fields.last_activity = now
            fields.purchases = [record]
            contact.set_custom_fields(fields)
            return contact

        contact, created = self._find_or_insert(store_id, email, build)

        if not created:
            fields = contact.get_custom_fields()
            fields.purchase_points += points
            fields.total_points += points
            fields.last_purchase_at = now
            fields.last_activity = now
            fields.purchases = fields.purchases + [record]
            contact.set_custom_fields(fields)

            contact.engagement_score = clamp_score((contact.engagement_score or 0) + PURCHASE_SCORE_BONUS)

            # First touch attribution is kept
            if product_id and not contact.source_product_id:
                contact.source_product_id = product_id
            if course_id and not contact.source_course_id:
                contact.source_course_id = course_id
            if user_id and not contact.user_id:
                contact.user_id = user_id

            contact.updated_at = now
            self.db.flush()

        self.tagger.add_tags_to_contact(contact.id, store_id, tags)
        self.activity_logger.log_purchase(contact.id, store_id, title, amount)

        return SyncResult(contact_id=contact.id, created=created, tags_added=tags)

    def sync_from_enrollment(
        self,
        store_id: str,
        email: str,
        user_id: str,
        course_id: str
    ) -> SyncResult:
        """Record a course enrollment."""
        course = self.db.get(Course, course_id)
        if not course:
            raise ReferencedEntityNotFound("Course", course_id)

        tags = tag_rules.unique_tags(tag_rules.enrollment_course_tags(course))
        skill_level_updated = False
        now = utcnow()

        def build():
            contact = self._new_contact(
                store_id, email, ContactSource.COURSE_ENROLLMENT,
                source_course_id=course_id,
                user_id=user_id
            )
            fields = contact.get_custom_fields()
            fields.student_level = course.skill_level
            fields.last_activity = now
            fields.enrolled_courses = [course_id]
            contact.set_custom_fields(fields)
            return contact

        contact, created = self._find_or_insert(store_id, email, build)

        if created:
            skill_level_updated = bool(course.skill_level)
        else:
            fields = contact.get_custom_fields()
            fields.last_activity = now
            fields.enrolled_courses = fields.enrolled_courses + [course_id]

            if course.skill_level and fields.student_level != course.skill_level:
                fields.student_level = course.skill_level
                skill_level_updated = True

            contact.set_custom_fields(fields)

            if not contact.source_course_id:
                contact.source_course_id = course_id
            if not contact.user_id:
                contact.user_id = user_id

            contact.updated_at = now
            self.db.flush()

        self.tagger.add_tags_to_contact(contact.id, store_id, tags)
        self.activity_logger.log_enrollment(contact.id, store_id, course.title)

        return SyncResult(
            contact_id=contact.id,
            created=created,
            tags_added=tags,
            skill_level_updated=skill_level_updated
        )

    def sync_engagement(
        self,
        store_id: str,
        email: str,
        event_type: str,
        link_url: Optional[str] = None,
        email_subject: Optional[str] = None
    ) -> SyncResult:
        """
        Apply an email engagement event.

        Engagement never creates contacts: an unknown email yields an empty
        result. The hot/warm tag is chosen from the score after this event.
        """
        event = EngagementEvent.parse(event_type)

        contact = self.get_contact_by_email(store_id, email)
        if not contact:
            logger.warning(f"Engagement event {event.value} for unknown contact {email} in store {store_id}")
            return SyncResult(contact_id=None, tags_added=[])

        tags = []
        now = utcnow()
        score = contact.engagement_score or 0

        if event is EngagementEvent.OPENED:
            contact.emails_opened = (contact.emails_opened or 0) + 1
            contact.last_opened_at = now
            score = clamp_score(score + OPEN_SCORE_BONUS)
            fields = contact.get_custom_fields()
            fields.last_activity = now
            fields.total_points += OPEN_POINTS
            contact.set_custom_fields(fields)

        elif event is EngagementEvent.CLICKED:
            contact.emails_clicked = (contact.emails_clicked or 0) + 1
            contact.last_clicked_at = now
            score = clamp_score(score + CLICK_SCORE_BONUS)
            fields = contact.get_custom_fields()
            fields.last_activity = now
            fields.total_points += CLICK_POINTS
            contact.set_custom_fields(fields)
            tags.extend(link_interest_tags(link_url))

        elif event is EngagementEvent.BOUNCED:
            contact.status = ContactStatus.BOUNCED.value
            score = clamp_score(score - BOUNCE_SCORE_PENALTY)

        contact.engagement_score = score
        contact.updated_at = now
        self.db.flush()

        threshold_tag = engagement_tag(score)
        if threshold_tag:
            tags.append(threshold_tag)

        if tags:
            self.tagger.add_tags_to_contact(contact.id, store_id, tags)

        self.activity_logger.log_engagement(
            contact.id, store_id, event.value,
            email_subject=email_subject,
            link_url=link_url
        )

        return SyncResult(contact_id=contact.id, tags_added=tags)

    # ------------------------------------------------------------------
    # Operator helpers
    # ------------------------------------------------------------------

    def record_email_sent(
        self,
        contact_id: str,
        campaign_id: Optional[str] = None,
        email_subject: Optional[str] = None
    ) -> Optional[EmailContact]:
        """Count an outgoing email. Unknown contacts are ignored."""
        contact = self.db.get(EmailContact, contact_id)
        if not contact:
            logger.warning(f"Email sent to unknown contact {contact_id}")
            return None

        contact.emails_sent = (contact.emails_sent or 0) + 1
        contact.updated_at = utcnow()
        self.db.flush()

        self.activity_logger.log_email_sent(contact.id, contact.store_id, campaign_id, email_subject)
        return contact

    def manual_tag_contact(self, store_id: str, email: str, tags: List[str]) -> SyncResult:
        """Attach operator-chosen tags by name to an existing contact."""
        contact = self.get_contact_by_email(store_id, email)
        if not contact:
            return SyncResult(contact_id=None, tags_added=[])

        self.tagger.add_tags_to_contact(contact.id, store_id, tags)
        return SyncResult(contact_id=contact.id, tags_added=list(tags))

    def create_contact(self, store_id: str, data: ContactCreate) -> EmailContact:
        """Create a contact explicitly; fails if the email is already known."""
        if self.get_contact_by_email(store_id, data.email):
            raise ContactAlreadyExists(store_id, normalize_email(data.email))

        contact = self._insert_contact(self._new_contact(
            store_id, data.email, data.source,
            first_name=data.first_name,
            last_name=data.last_name,
            source_product_id=data.source_product_id,
            source_course_id=data.source_course_id,
            custom_fields={}
        ))
        if contact is None:
            raise ContactAlreadyExists(store_id, normalize_email(data.email))

        if data.tag_names:
            self.tagger.add_tags_to_contact(contact.id, store_id, data.tag_names)

        return contact

    def bulk_import_contacts(
        self,
        store_id: str,
        contacts: List[ContactImportRow],
        source: ContactSource = ContactSource.IMPORT
    ) -> BulkImportResult:
        """
        Create contacts from an uploaded list.

        Emails already known in the store are skipped, never updated. Each row
        runs in its own savepoint; a failing row is reported in `errors` and
        the rest of the batch continues.
        """
        result = BulkImportResult()
        source = ContactSource(source)

        for row in contacts:
            try:
                email = normalize_email(EMAIL_ADAPTER.validate_python(row.email.strip()))
            except ValidationError:
                result.errors.append(f"Failed to import {row.email}: invalid email address")
                continue

            if self.get_contact_by_email(store_id, email):
                result.skipped += 1
                continue

            try:
                with self.db.begin_nested():
                    contact = self._insert_contact(self._new_contact(
                        store_id, email, source,
                        first_name=row.first_name,
                        last_name=row.last_name,
                        custom_fields={}
                    ))
                    if contact and row.tag_names:
                        self.tagger.add_tags_to_contact(contact.id, store_id, row.tag_names)
            except SQLAlchemyError as e:
                logger.error(f"Import of {email} into store {store_id} failed: {e}")
                result.errors.append(f"Failed to import {email}: {e}")
                continue

            if contact is None:
                result.skipped += 1
            else:
                result.imported += 1

        logger.info(
            f"Imported contacts into store {store_id}: {result.imported} new, "
            f"{result.skipped} skipped, {len(result.errors)} failed"
        )
        return result


def create_contact_sync_service(db: Session) -> ContactSyncService:
    """Factory function to create contact sync service"""
    return ContactSyncService(db)
