# campus_parking/services/scheduler.py
"""
Background jobs, run on the app's event loop by APScheduler:
  - expiry sweep     cron, minute EXPIRY_SWEEP_CRON_MINUTE of every hour
  - reminders        every REMINDER_INTERVAL_MINUTES
  - ws heartbeat     every WS_HEARTBEAT_SECONDS
Every job is a coroutine so change events publish on the running loop.
Each job opens its own session and never lets an exception escape.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from campus_parking.config import settings
from campus_parking.database import SessionLocal
from campus_parking.services.change_notifier import notifier
from campus_parking.services.expiry_service import expire_overdue_bookings, send_booking_reminders
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)

EXPIRY_JOB_ID = "booking_expiry_sweep"
REMINDER_JOB_ID = "booking_reminders"
HEARTBEAT_JOB_ID = "ws_heartbeat"

_scheduler = None


async def run_expiry_job():
    db = SessionLocal()
    try:
        expire_overdue_bookings(db)
    except Exception:
        logger.exception("[EXPIRY] Sweep failed")
        db.rollback()
    finally:
        db.close()


async def run_reminder_job():
    db = SessionLocal()
    try:
        await send_booking_reminders(db)
    except Exception:
        logger.exception("[REMINDER] Reminder job failed")
        db.rollback()
    finally:
        db.close()


async def run_heartbeat_job():
    try:
        await notifier.heartbeat()
    except Exception:
        logger.exception("[WS] Heartbeat failed")


def start_scheduler() -> AsyncIOScheduler:
    """Register the jobs and start. Must be called from inside the running loop (app startup)."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        return _scheduler

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(run_expiry_job, "cron", minute=settings.EXPIRY_SWEEP_CRON_MINUTE,
                      id=EXPIRY_JOB_ID, coalesce=True, max_instances=1)
    scheduler.add_job(run_reminder_job, "interval", minutes=settings.REMINDER_INTERVAL_MINUTES,
                      id=REMINDER_JOB_ID, coalesce=True, max_instances=1)
    scheduler.add_job(run_heartbeat_job, "interval", seconds=settings.WS_HEARTBEAT_SECONDS,
                      id=HEARTBEAT_JOB_ID, coalesce=True, max_instances=1)
    scheduler.start()
    _scheduler = scheduler

    logger.info(f"⏱️  Scheduler started — expiry at :{settings.EXPIRY_SWEEP_CRON_MINUTE:02d} hourly, "
                f"reminders every {settings.REMINDER_INTERVAL_MINUTES}min, "
                f"heartbeat every {settings.WS_HEARTBEAT_SECONDS}s")
    return scheduler


def stop_scheduler():
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("⏱️  Scheduler stopped")
    _scheduler = None
