"""Background scheduler for periodic housekeeping."""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from mathquest.config import settings
from mathquest.database import SessionLocal
from mathquest.services.quota_service import purge_stale_daily_plays, quota_ledger

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def prune_windows_job() -> None:
    """Forget rolling windows that have expired."""
    pruned = quota_ledger.prune()
    if pruned:
        logger.info(f"Quota: pruned {pruned} expired windows")


def purge_daily_plays_job() -> None:
    """Delete daily-challenge records past the retention period."""
    db = SessionLocal()
    try:
        purged = purge_stale_daily_plays(db, settings.daily_play_retention_days)
        if purged:
            logger.info(f"Cleanup: purged {purged} daily play records")
    except SQLAlchemyError as e:
        logger.error(f"Daily play cleanup failed: {e}")
    finally:
        db.close()


def start_scheduler() -> None:
    trigger = IntervalTrigger(hours=settings.cleanup_interval_hours)
    scheduler.add_job(prune_windows_job, trigger=trigger, id="prune_quota_windows", replace_existing=True)
    scheduler.add_job(
        purge_daily_plays_job, trigger=trigger, id="purge_daily_plays", replace_existing=True
    )
    scheduler.start()
    logger.info(f"Scheduler started - housekeeping runs every {settings.cleanup_interval_hours} hour(s)")


def shutdown_scheduler() -> None:
    scheduler.shutdown()
    logger.info("Scheduler stopped")
