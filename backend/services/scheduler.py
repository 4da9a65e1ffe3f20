"""Background scheduler for periodic syncs.

Uses APScheduler to run the daily incremental syncs and the intraday
snapshot capture inside the API process.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from models.platform_connection import Platform
from services.channel_sync import get_orchestrator
from services.snapshot_capture import get_snapshot_capture

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def sync_youtube_daily_all():
    """Background task: daily YouTube analytics for every connected account."""
    logger.info("Starting scheduled YouTube daily sync...")
    try:
        batch = await get_orchestrator().sync_all_accounts(Platform.YOUTUBE)
        logger.info(f"YouTube daily sync: {len(batch.synced)} synced, {len(batch.failed)} failed")
    except Exception as e:
        logger.error(f"Scheduled YouTube daily sync failed: {e}")


async def sync_instagram_daily_all():
    """Background task: daily Instagram insights for every connected account."""
    logger.info("Starting scheduled Instagram daily sync...")
    try:
        batch = await get_orchestrator().sync_all_accounts(Platform.INSTAGRAM)
        logger.info(f"Instagram daily sync: {len(batch.synced)} synced, {len(batch.failed)} failed")
    except Exception as e:
        logger.error(f"Scheduled Instagram daily sync failed: {e}")


async def capture_snapshots():
    """Background task: intraday counters for every connected account."""
    try:
        summary = await get_snapshot_capture().capture_all()
        logger.info(f"Snapshot capture: {summary.accounts} accounts, {summary.rows} rows")
    except Exception as e:
        logger.error(f"Scheduled snapshot capture failed: {e}")


def start_scheduler():
    """Start the background scheduler with all jobs."""
    if not settings.scheduler_enabled:
        print("⚠ Background scheduler disabled (SCHEDULER_ENABLED=false)")
        return

    if scheduler.running:
        print("✓ Scheduler already running")
        return

    # Daily syncs, staggered so the two platforms don't overlap
    scheduler.add_job(
        sync_youtube_daily_all,
        trigger=CronTrigger(hour=settings.daily_sync_hour, minute=0),
        id="youtube_daily_sync",
        name="Sync YouTube daily analytics",
        replace_existing=True,
    )

    scheduler.add_job(
        sync_instagram_daily_all,
        trigger=CronTrigger(hour=settings.daily_sync_hour, minute=30),
        id="instagram_daily_sync",
        name="Sync Instagram daily insights",
        replace_existing=True,
    )

    scheduler.add_job(
        capture_snapshots,
        trigger=IntervalTrigger(minutes=settings.snapshot_interval_minutes),
        id="intraday_snapshots",
        name="Capture intraday snapshots",
        replace_existing=True,
    )

    scheduler.start()
    print(
        f"✓ Background scheduler started (daily sync at {settings.daily_sync_hour:02d}:00, "
        f"snapshots every {settings.snapshot_interval_minutes} minutes)"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped")
