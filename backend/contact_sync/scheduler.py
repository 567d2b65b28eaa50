"""APScheduler configuration for scheduled tag reconciliation."""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import logging
from sqlalchemy.orm import Session

from contact_sync.config import settings
from contact_sync.models import EmailContact, ReconciliationCheckpoint, utcnow
from contact_sync.services.reconciliation import BatchReconciliationService

logger = logging.getLogger(__name__)

RETAG_JOB_NAME = "retag_all_contacts"

# Create scheduler instance
scheduler = BackgroundScheduler(timezone="UTC")


def get_checkpoint(db: Session, store_id: str, job_name: str) -> ReconciliationCheckpoint:
    checkpoint = db.query(ReconciliationCheckpoint).filter(
        ReconciliationCheckpoint.store_id == store_id,
        ReconciliationCheckpoint.job_name == job_name
    ).first()

    if not checkpoint:
        checkpoint = ReconciliationCheckpoint(store_id=store_id, job_name=job_name, pages_run=0)
        db.add(checkpoint)
        db.flush()

    return checkpoint


def run_reconciliation_tick(db: Session) -> dict:
    """
    Run one page of the retag job for every store that has contacts.

    Each store resumes from its persisted cursor. When a pass finishes the
    cursor is cleared, so the next tick starts a fresh pass.

    Returns:
        Mapping of store_id to the page's BatchResult
    """
    service = BatchReconciliationService(db)
    store_ids = [
        row[0] for row in db.query(EmailContact.store_id).distinct().order_by(EmailContact.store_id).all()
    ]

    results = {}
    for store_id in store_ids:
        checkpoint = get_checkpoint(db, store_id, RETAG_JOB_NAME)

        result = service.retag_all_contacts(store_id, cursor=checkpoint.cursor)

        checkpoint.pages_run = (checkpoint.pages_run or 0) + 1
        checkpoint.last_run_at = utcnow()
        if result.done:
            checkpoint.cursor = None
            checkpoint.completed_at = checkpoint.last_run_at
            logger.info(f"Retag pass complete for store {store_id}")
        else:
            checkpoint.cursor = result.next_cursor

        db.commit()
        results[store_id] = result

    return results


def scheduled_reconciliation():
    """Called by APScheduler."""
    from contact_sync.database import SessionLocal

    logger.info("Running scheduled tag reconciliation...")

    db = SessionLocal()
    try:
        results = run_reconciliation_tick(db)
        logger.info(f"Reconciled {len(results)} store(s)")
    except Exception as e:
        db.rollback()
        logger.error(f"Error in scheduled reconciliation: {e}", exc_info=True)
    finally:
        db.close()


def start_scheduler():
    """
    Initialize and start the APScheduler.

    Jobs:
    - Tag reconciliation: daily at RECONCILIATION_CRON_HOUR (UTC), one page per store
    """
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        scheduled_reconciliation,
        trigger=CronTrigger(hour=settings.RECONCILIATION_CRON_HOUR, minute=0),
        id="tag_reconciliation",
        name="Tag Reconciliation",
        replace_existing=True,
        max_instances=1
    )

    scheduler.start()
    logger.info("APScheduler started")

    for job in scheduler.get_jobs():
        logger.info(f"   {job.name}: next run at {job.next_run_time}")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
