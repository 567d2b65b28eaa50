"""
Activity Logger - append-only contact activity trail
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from contact_sync.models import ContactActivity, utcnow
from contact_sync.schemas.contact import ActivityType


class ContactActivityLogger:
    """Logs contact events. Rows are never updated or deleted."""

    def __init__(self, db: Session):
        self.db = db

    def log_activity(
        self,
        contact_id: str,
        store_id: str,
        activity_type: ActivityType,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ContactActivity:
        """Append one activity row"""
        activity = ContactActivity(
            contact_id=contact_id,
            store_id=store_id,
            activity_type=ActivityType(activity_type).value,
            metadata_=metadata or {},
            timestamp=utcnow()
        )

        self.db.add(activity)
        self.db.flush()

        return activity

    def log_subscribed(self, contact_id: str, store_id: str, product_title: str):
        return self.log_activity(
            contact_id, store_id, ActivityType.SUBSCRIBED,
            {"tagName": f"Follow gate: {product_title}"}
        )

    def log_purchase(self, contact_id: str, store_id: str, title: str, amount: float):
        return self.log_activity(
            contact_id, store_id, ActivityType.CUSTOM_FIELD_UPDATED,
            {"fieldName": "purchase", "newValue": title, "amount": amount}
        )

    def log_enrollment(self, contact_id: str, store_id: str, course_title: str):
        return self.log_activity(
            contact_id, store_id, ActivityType.CAMPAIGN_ENROLLED,
            {"tagName": f"Course: {course_title}"}
        )

    def log_engagement(self, contact_id: str, store_id: str, event_type: ActivityType,
                       email_subject: Optional[str] = None, link_url: Optional[str] = None):
        details = {}
        if email_subject:
            details["emailSubject"] = email_subject
        if link_url:
            details["linkClicked"] = link_url
        return self.log_activity(contact_id, store_id, event_type, details)

    def log_email_sent(self, contact_id: str, store_id: str,
                       campaign_id: Optional[str] = None, email_subject: Optional[str] = None):
        details = {}
        if campaign_id:
            details["campaignId"] = campaign_id
        if email_subject:
            details["emailSubject"] = email_subject
        return self.log_activity(contact_id, store_id, ActivityType.EMAIL_SENT, details)

    def log_tag_added(self, contact_id: str, store_id: str, tag_id: str, tag_name: str):
        return self.log_activity(
            contact_id, store_id, ActivityType.TAG_ADDED,
            {"tagId": tag_id, "tagName": tag_name}
        )

    def get_contact_activity(self, contact_id: str, limit: int = 50) -> List[ContactActivity]:
        """Newest first"""
        return self.db.query(ContactActivity).filter(
            ContactActivity.contact_id == contact_id
        ).order_by(ContactActivity.timestamp.desc()).limit(limit).all()
