# backend/contact_sync/services/reconciliation.py
"""
Batch Reconciliation - re-derives contact tags from source-of-truth records

Used to backfill tags for contacts created before a rule existed and to
correct drift from events that were lost or raced. Every job processes
exactly one page per call and returns an opaque `next_cursor`; the caller
stores it and calls again until `done` is true.

Jobs never raise for a single bad item. Each item runs in a SAVEPOINT, so a
failure rolls back only that item's writes and is counted in `errors`.
"""

from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from contact_sync.config import settings
from contact_sync.exceptions import ReferencedEntityNotFound
from contact_sync.models import (
    Course,
    Customer,
    DigitalProduct,
    EmailContact,
    Enrollment,
    Purchase,
    User,
    utcnow,
)
from contact_sync.schemas.maintenance import BatchResult, ContactEnrollmentTagResult
from contact_sync.services import tag_rules
from contact_sync.services.contact_sync import ContactSyncService, normalize_email
from contact_sync.services.cursor import apply_keyset, split_page
from contact_sync.services.tag_application import TagApplicationService

logger = logging.getLogger(__name__)


class BatchReconciliationService:
    """Cursor-paginated tag backfill jobs."""

    def __init__(self, db: Session):
        self.db = db
        self.tagger = TagApplicationService(db)
        self.contacts = ContactSyncService(db)

    # ------------------------------------------------------------------
    # Lookups tolerant of dangling references
    # ------------------------------------------------------------------

    def _product(self, product_id: Optional[str]) -> Optional[DigitalProduct]:
        if not product_id:
            return None
        product = self.db.get(DigitalProduct, product_id)
        if product is None:
            logger.debug(f"Skipping deleted product {product_id}")
        return product

    def _course(self, course_id: Optional[str]) -> Optional[Course]:
        if not course_id:
            return None
        course = self.db.get(Course, course_id)
        if course is None:
            logger.debug(f"Skipping deleted course {course_id}")
        return course

    def _store_courses(self, store_id: str) -> Dict[str, Course]:
        courses = self.db.query(Course).filter(Course.store_id == store_id).all()
        return {course.id: course for course in courses}

    # ------------------------------------------------------------------
    # Full re-tag
    # ------------------------------------------------------------------

    def derive_contact_tags(self, contact: EmailContact) -> List[str]:
        """Every tag a contact should hold according to stored records."""
        tags = []

        # 1. Purchase history of the linked customer
        if contact.customer_id:
            tags.append("customer")
            customer = self.db.get(Customer, contact.customer_id)
            if customer:
                purchases = self.db.query(Purchase).filter(
                    Purchase.customer_id == customer.id
                ).order_by(Purchase.created_at, Purchase.id).all()
                for purchase in purchases:
                    product = self._product(purchase.product_id)
                    if product:
                        tags.extend(tag_rules.owned_product_tags(product))
                    course = self._course(purchase.course_id)
                    if course:
                        tags.extend(tag_rules.enrollment_course_tags(course))

        fields = contact.get_custom_fields()

        # 2. Enrolled courses
        for course_id in fields.enrolled_courses:
            course = self._course(course_id)
            if course:
                tags.extend(tag_rules.enrollment_course_tags(course))

        # 3. Follow-gate downloads
        if fields.follow_gate_products:
            for product_id in fields.follow_gate_products:
                product = self._product(product_id)
                if product:
                    tags.extend(tag_rules.owned_product_tags(product))
            tags.append("source:follow-gate")

        # 4. How the contact joined
        tags.extend(tag_rules.source_tags(contact.source))

        # 5. Engagement thresholds
        tags.extend(tag_rules.reconciliation_engagement_tags(
            contact.engagement_score, contact.emails_sent
        ))

        # 6. First-touch product/course
        product = self._product(contact.source_product_id)
        if product:
            tags.extend(tag_rules.source_product_tags(product))

        course = self._course(contact.source_course_id)
        if course:
            tags.extend(tag_rules.source_course_tags(course))

        return tag_rules.unique_tags(tags)

    def retag_all_contacts(
        self,
        store_id: str,
        cursor: Optional[str] = None,
        batch_size: Optional[int] = None
    ) -> BatchResult:
        """
        Re-derive tags for one page of a store's contacts.

        `tags_added` counts tags evaluated per contact after de-duplication,
        including ones the contact already held.
        """
        batch_size = batch_size or settings.RETAG_BATCH_SIZE

        query = self.db.query(EmailContact).filter(EmailContact.store_id == store_id)
        rows = apply_keyset(query, EmailContact, cursor, batch_size).all()
        page, next_cursor, done = split_page(rows, batch_size)

        result = BatchResult(next_cursor=next_cursor, done=done)

        for contact in page:
            contact_id = contact.id
            try:
                with self.db.begin_nested():
                    tags = self.derive_contact_tags(contact)
                    if tags:
                        self.tagger.add_tags_to_contact(contact_id, store_id, tags)
                result.tags_added += len(tags)
                result.processed += 1
            except Exception as e:
                logger.error(f"Error re-tagging contact {contact_id}: {e}", exc_info=True)
                result.errors += 1

        logger.info(
            f"Retag page for store {store_id}: processed={result.processed}, "
            f"tags={result.tags_added}, errors={result.errors}, done={result.done}"
        )
        return result

    # ------------------------------------------------------------------
    # Enrollment backfill
    # ------------------------------------------------------------------

    def _tag_user_courses(self, store_id: str, user_id: str, courses: List[Course]) -> Optional[int]:
        """Tag one enrolled user's contact. Returns tags applied, or None if skipped."""
        user = self.db.get(User, user_id)
        if not user or not user.email:
            logger.warning(f"Enrolled user {user_id} has no email, skipping")
            return None

        contact = self.contacts.get_contact_by_email(store_id, user.email)
        if not contact:
            logger.warning(f"No contact for enrolled user {user_id} in store {store_id}")
            return None

        tags = ["student", "interest:learning"]
        for course in courses:
            tags.extend(tag_rules.course_detail_tags(course))
        tags = tag_rules.unique_tags(tags)

        self.tagger.add_tags_to_contact(contact.id, store_id, tags)
        return len(tags)

    def tag_enrolled_users_with_course_tags(
        self,
        store_id: str,
        cursor: Optional[str] = None,
        batch_size: Optional[int] = None
    ) -> BatchResult:
        """
        Tag contacts of users enrolled in the store's courses.

        Pages over enrollments, not contacts. Users without an email or
        without a contact are counted as errors; contacts are never created.
        `processed` counts enrollments read in this page.
        """
        batch_size = batch_size or settings.ENROLLMENT_TAG_BATCH_SIZE

        courses = self._store_courses(store_id)
        if not courses:
            return BatchResult(done=True, users_tagged=0)

        query = self.db.query(Enrollment).filter(Enrollment.course_id.in_(list(courses)))
        rows = apply_keyset(query, Enrollment, cursor, batch_size).all()
        page, next_cursor, done = split_page(rows, batch_size)

        result = BatchResult(
            processed=len(page),
            next_cursor=next_cursor,
            done=done,
            users_tagged=0
        )

        courses_by_user: Dict[str, List[Course]] = {}
        for enrollment in page:
            courses_by_user.setdefault(enrollment.user_id, []).append(courses[enrollment.course_id])

        for user_id, user_courses in courses_by_user.items():
            try:
                with self.db.begin_nested():
                    applied = self._tag_user_courses(store_id, user_id, user_courses)
            except Exception as e:
                logger.error(f"Error tagging enrolled user {user_id}: {e}", exc_info=True)
                result.errors += 1
                continue

            if applied is None:
                result.errors += 1
            else:
                result.tags_added += applied
                result.users_tagged += 1

        logger.info(
            f"Enrollment tag page for store {store_id}: users={result.users_tagged}, "
            f"errors={result.errors}, done={result.done}"
        )
        return result

    # ------------------------------------------------------------------
    # Purchaser backfill
    # ------------------------------------------------------------------

    def tag_product_purchasers(
        self,
        store_id: str,
        product_id: str,
        cursor: Optional[str] = None,
        batch_size: Optional[int] = None
    ) -> BatchResult:
        """
        Tag the contacts of everyone who completed a purchase of one product.

        Purchasers without a contact are counted as errors. A contact that
        is not yet linked to its customer record gets linked.
        """
        batch_size = batch_size or settings.PURCHASER_TAG_BATCH_SIZE

        product = self.db.get(DigitalProduct, product_id)
        if not product or product.store_id != store_id:
            raise ReferencedEntityNotFound("Product", product_id)

        tags = tag_rules.unique_tags(["customer"] + tag_rules.purchase_product_tags(product))

        query = self.db.query(Purchase).filter(
            Purchase.product_id == product_id,
            Purchase.store_id == store_id,
            Purchase.status == "completed"
        )
        rows = apply_keyset(query, Purchase, cursor, batch_size).all()
        page, next_cursor, done = split_page(rows, batch_size)

        result = BatchResult(
            processed=len(page),
            next_cursor=next_cursor,
            done=done,
            contacts_tagged=0
        )

        for purchase in page:
            try:
                with self.db.begin_nested():
                    customer = self.db.get(Customer, purchase.customer_id)
                    contact = (
                        self.contacts.get_contact_by_email(store_id, customer.email)
                        if customer else None
                    )
                    if contact:
                        if not contact.customer_id:
                            contact.customer_id = customer.id
                            contact.updated_at = utcnow()
                        self.tagger.add_tags_to_contact(contact.id, store_id, tags)
            except Exception as e:
                logger.error(f"Error tagging purchaser of {product_id} (purchase {purchase.id}): {e}", exc_info=True)
                result.errors += 1
                continue

            if contact is None:
                logger.warning(f"No contact for purchase {purchase.id} of product {product_id}")
                result.errors += 1
            else:
                result.tags_added += len(tags)
                result.contacts_tagged += 1

        return result

    # ------------------------------------------------------------------
    # Single contact
    # ------------------------------------------------------------------

    def tag_contact_with_enrollments(self, store_id: str, email: str) -> ContactEnrollmentTagResult:
        """Apply course tags for every enrollment the contact's user has in this store."""
        contact = self.contacts.get_contact_by_email(store_id, email)
        if not contact:
            raise ReferencedEntityNotFound("Contact", normalize_email(email))

        user = self.db.get(User, contact.user_id) if contact.user_id else None
        if user is None:
            user = self.db.query(User).filter(User.email == contact.email).first()
        if user is None:
            logger.info(f"Contact {contact.id} has no platform user, nothing to tag")
            return ContactEnrollmentTagResult(contact_id=contact.id, courses_tagged=0)

        courses = self._store_courses(store_id)
        enrollments = []
        if courses:
            enrollments = self.db.query(Enrollment).filter(
                Enrollment.user_id == user.id,
                Enrollment.course_id.in_(list(courses))
            ).order_by(Enrollment.created_at, Enrollment.id).all()

        if not enrollments:
            return ContactEnrollmentTagResult(contact_id=contact.id, courses_tagged=0)

        enrolled_courses = tag_rules.unique_tags(e.course_id for e in enrollments)

        tags = ["student", "interest:learning"]
        for course_id in enrolled_courses:
            tags.extend(tag_rules.course_detail_tags(courses[course_id]))
        tags = tag_rules.unique_tags(tags)

        # Record enrollments the contact was missing so later re-tags see them
        fields = contact.get_custom_fields()
        missing = [course_id for course_id in enrolled_courses if course_id not in fields.enrolled_courses]
        if missing:
            fields.enrolled_courses = fields.enrolled_courses + missing
            contact.set_custom_fields(fields)
        if not contact.user_id:
            contact.user_id = user.id
        contact.updated_at = utcnow()
        self.db.flush()

        self.tagger.add_tags_to_contact(contact.id, store_id, tags)

        return ContactEnrollmentTagResult(
            contact_id=contact.id,
            courses_tagged=len(enrolled_courses),
            tags_added=tags
        )


def create_reconciliation_service(db: Session) -> BatchReconciliationService:
    """Factory function to create batch reconciliation service"""
    return BatchReconciliationService(db)
