"""Celery tasks for removing orphaned avatar objects from storage."""

import asyncio
import logging

from sqlalchemy.orm import Session

from src.celery_app import app as celery_app
from src.config import get_settings
from src.database import SessionLocal, session_scope
from src.services.avatar_cleanup import AvatarCleanupService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def process_avatar_deletions(self, limit: int | None = None) -> dict:
    """Drain due rows from the avatar deletion outbox.

    This task runs every ``avatar_cleanup_interval_seconds`` via celery-beat.
    Storage failures are handled per row by the service; only errors such as
    a database outage fail the task and trigger a retry.

    Args:
        limit: Maximum number of deletions to attempt, defaults to the batch size

    Returns:
        dict with processing statistics
    """
    db: Session = SessionLocal()
    try:
        service = AvatarCleanupService(db)
        stats = asyncio.run(service.process_pending(limit))
        return {"success": True, **stats.as_dict()}

    except Exception as e:
        logger.error(f"Error in process_avatar_deletions: {e}", exc_info=True)
        db.rollback()

        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=30)

        return {"error": str(e)}

    finally:
        db.close()


@celery_app.task
def sweep_orphaned_avatars() -> dict:
    """Queue deletions for stored avatars that no profile references."""
    if not get_settings().avatar_sweep_enabled:
        logger.debug("Orphan sweep disabled, skipping")
        return {"skipped": True}

    with session_scope() as db:
        queued = asyncio.run(AvatarCleanupService(db).sweep_orphans())

    return {"success": True, "queued": queued}
