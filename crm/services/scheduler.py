"""Background scheduler for OTP housekeeping.

Runs the expired-code sweep on a cron schedule. The sweep is best effort:
lookups already ignore expired codes, so a missed run only delays cleanup.
"""

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from crm.config import settings
from crm.services.otp import OtpService

LOGGER = logging.getLogger(__name__)

SWEEP_JOB_ID = "otp_sweep_expired"

# Global scheduler instance
scheduler: Optional[BackgroundScheduler] = None


def build_scheduler(service: OtpService, cron: str) -> BackgroundScheduler:
    background = BackgroundScheduler(timezone="UTC")
    background.add_job(
        service.sweep_expired,
        trigger=CronTrigger.from_crontab(cron, timezone="UTC"),
        id=SWEEP_JOB_ID,
        name="Delete expired OTP codes",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return background


def start_scheduler(service: OtpService, cron: Optional[str] = None) -> BackgroundScheduler:
    global scheduler

    if scheduler is not None and scheduler.running:
        LOGGER.warning("Scheduler already running")
        return scheduler

    scheduler = build_scheduler(service, cron or settings.otp_sweep_cron)
    scheduler.start()
    LOGGER.info("OTP sweep scheduled cron=%s", cron or settings.otp_sweep_cron)
    return scheduler


def stop_scheduler() -> None:
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        LOGGER.info("Scheduler stopped")
    scheduler = None
