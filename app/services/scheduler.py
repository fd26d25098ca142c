"""
app/services/scheduler.py

Purpose: Background jobs inside the API process

- Email sequence scan every 15 minutes (first run 30 seconds after startup)
- Cleanup of expired local SMS codes and stale rate-limit keys every 5 minutes
"""

from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.logging import get_logger
from app.services import email_sequence_service
from app.services.sms_verification_service import sms_verification_service
from utils.rate_limit import prune_all_limiters

logger = get_logger(__name__)


class TaskScheduler:
    """Wraps an AsyncIOScheduler and the application's periodic jobs"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="Europe/Paris")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self):
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        first_run = datetime.now(self.scheduler.timezone) + timedelta(
            seconds=settings.EMAIL_SCHEDULER_INITIAL_DELAY_SECONDS
        )

        self.scheduler.add_job(
            self.process_email_sequences,
            IntervalTrigger(minutes=settings.EMAIL_SCHEDULER_INTERVAL_MINUTES),
            id="process_email_sequences",
            name="Envoi des séquences email",
            next_run_time=first_run,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self.scheduler.add_job(
            self.cleanup_expired_entries,
            IntervalTrigger(minutes=5),
            id="cleanup_expired_entries",
            name="Nettoyage des codes SMS et compteurs expirés",
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self.scheduler.start()
        logger.info(
            f"⏰ Scheduler started (sequences every {settings.EMAIL_SCHEDULER_INTERVAL_MINUTES} min)"
        )

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    # ==================== JOBS ====================

    async def process_email_sequences(self):
        try:
            result = await email_sequence_service.process_scheduled_emails()
            if result["sent"] or result["failed"]:
                logger.info(f"Sequence job: {result['sent']} sent, {result['failed']} failed")
        except Exception as e:
            logger.error(f"❌ Sequence job failed: {e}", exc_info=True)

    async def cleanup_expired_entries(self):
        sms_verification_service.cleanup_expired_codes()
        pruned = prune_all_limiters()
        if pruned:
            logger.debug(f"Pruned {pruned} idle rate-limit key(s)")


task_scheduler = TaskScheduler()


def start_scheduler():
    task_scheduler.start()


def stop_scheduler():
    task_scheduler.stop()
