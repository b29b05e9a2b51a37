"""
Background scheduler for periodic tasks.

This module manages background jobs that run on a schedule:
- Cleanup orphaned cover images: files in the upload directory that no post
  points at (left behind by failed uploads or replaced covers)
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from quill.core.config import settings
from quill.core.database import SessionLocal
from quill.models.post import Post
from quill.storage.local_storage import CoverStorage, storage

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def cleanup_orphaned_covers_job(session_factory=SessionLocal, cover_storage: CoverStorage = storage) -> int:
    """Delete cover files not referenced by any post; returns how many were removed"""
    try:
        async with session_factory() as db:
            referenced = set((await db.execute(select(Post.cover))).scalars().all())
    except Exception:
        logger.exception("Error in cleanup_orphaned_covers_job")
        return 0

    deleted = 0
    for public_path in cover_storage.list_covers():
        if public_path in referenced:
            continue
        try:
            if cover_storage.delete_cover(public_path):
                deleted += 1
                logger.info(f"Deleted orphaned cover: {public_path}")
        except OSError as e:
            logger.error(f"Error deleting orphaned cover {public_path}: {str(e)}")

    if deleted > 0:
        logger.info(f"Cleanup job completed: Deleted {deleted} orphaned covers")
    else:
        logger.info("Cleanup job completed: No orphaned covers found")
    return deleted


def start_scheduler():
    """
    Start the background scheduler.

    Called from the app lifespan; must run inside the event loop.
    """
    if not scheduler.running:
        scheduler.add_job(
            cleanup_orphaned_covers_job,
            trigger=IntervalTrigger(hours=settings.COVER_CLEANUP_INTERVAL_HOURS),
            id="cleanup_orphaned_covers",
            name="Cleanup orphaned covers",
            replace_existing=True,
        )
        scheduler.start()
        logger.info(
            f"Background scheduler started. Cover cleanup runs every {settings.COVER_CLEANUP_INTERVAL_HOURS} hours."
        )


def stop_scheduler():
    """Stop the background scheduler on app shutdown"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
