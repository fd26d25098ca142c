import logging
from datetime import datetime, timedelta

import pytest

from app.core.config import settings
from app.services import email_sequence_service
from app.services.scheduler import TaskScheduler
from app.services.sms_verification_service import VerificationRecord, sms_verification_service
from utils.rate_limit import get_rate_limiter
from utils.time_utils import utcnow


@pytest.mark.asyncio
async def test_jobs_are_registered_on_start(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_SCHEDULER_INTERVAL_MINUTES", 15)
    monkeypatch.setattr(settings, "EMAIL_SCHEDULER_INITIAL_DELAY_SECONDS", 30)
    task_scheduler = TaskScheduler()

    task_scheduler.start()
    try:
        assert task_scheduler.running

        sequences = task_scheduler.scheduler.get_job("process_email_sequences")
        assert sequences.trigger.interval == timedelta(minutes=15)
        assert sequences.max_instances == 1
        assert sequences.coalesce
        delay = sequences.next_run_time - datetime.now(sequences.next_run_time.tzinfo)
        assert timedelta(seconds=25) < delay <= timedelta(seconds=30)

        cleanup = task_scheduler.scheduler.get_job("cleanup_expired_entries")
        assert cleanup.trigger.interval == timedelta(minutes=5)
        assert cleanup.max_instances == 1

        # A second start is ignored
        task_scheduler.start()
        assert len(task_scheduler.scheduler.get_jobs()) == 2
    finally:
        task_scheduler.stop()

    assert not task_scheduler.running


@pytest.mark.asyncio
async def test_sequence_job_logs_and_swallows_errors(monkeypatch, caplog):
    async def broken(now=None):
        raise RuntimeError("mongo down")

    monkeypatch.setattr(email_sequence_service, "process_scheduled_emails", broken)
    caplog.set_level(logging.ERROR)

    await TaskScheduler().process_email_sequences()

    assert any("Sequence job failed: mongo down" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_cleanup_job_drops_expired_codes_and_idle_limits():
    sms_verification_service._records["+33612345678"] = VerificationRecord(
        code="482913", expires_at=utcnow() - timedelta(minutes=1)
    )
    sms_verification_service._records["+33798765432"] = VerificationRecord(
        code="731904", expires_at=utcnow() + timedelta(minutes=5)
    )
    limiter = get_rate_limiter(max_requests=3, window_seconds=60)
    limiter.check("10.0.0.1:/api/sms/send-verification", now=datetime.now() - timedelta(minutes=2))
    limiter.check("10.0.0.2:/api/sms/send-verification")

    await TaskScheduler().cleanup_expired_entries()

    assert list(sms_verification_service._records) == ["+33798765432"]
    assert len(limiter) == 1
