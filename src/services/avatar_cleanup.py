"""Drains the avatar deletion outbox against the storage API."""

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.models.avatar_deletion import AvatarDeletion
from src.models.enums import DeletionReason, DeletionStatus
from src.models.profile import Profile
from src.services.storage import StorageClient, StorageDeleteResult

logger = logging.getLogger(__name__)


@dataclass
class CleanupStats:
    """Counters for one outbox drain."""

    processed: int = 0
    deleted: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class AvatarCleanupService:
    """Performs queued avatar deletions.

    Storage failures are logged as warnings and recorded on the outbox row.
    They are retried with exponential backoff until
    ``avatar_delete_max_attempts`` is reached, after which the row is marked
    failed and the object is left in storage. Keys that a profile has started
    using again since they were queued are never deleted.
    """

    def __init__(
        self,
        db: Session,
        storage: StorageClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.storage = storage or StorageClient()
        self.settings = settings or get_settings()

    def next_due(self, now: datetime, after_id: int = 0) -> AvatarDeletion | None:
        """Claim the oldest pending deletion that is due, past ``after_id``."""
        query = (
            self.db.query(AvatarDeletion)
            .filter(
                AvatarDeletion.status == DeletionStatus.PENDING,
                AvatarDeletion.next_attempt_at <= now,
                AvatarDeletion.id > after_id,
            )
            .order_by(AvatarDeletion.id)
            .limit(1)
        )
        # Lets several workers drain the outbox without claiming the same rows
        if self.db.get_bind().dialect.name == "postgresql":
            query = query.with_for_update(skip_locked=True)
        return query.first()

    def referenced_keys(self, bucket: str, keys: list[str] | None = None) -> set[str]:
        """Avatar keys in ``bucket`` that some profile currently points at."""
        if bucket != self.settings.avatar_bucket:
            return set()
        query = self.db.query(Profile.avatar_url).filter(Profile.avatar_url.isnot(None))
        if keys is not None:
            query = query.filter(Profile.avatar_url.in_(keys))
        return {key for (key,) in query.all()}

    async def process_pending(self, limit: int | None = None) -> CleanupStats:
        """Attempt every due deletion once.

        Each outcome is committed on its own, so a crash partway through a
        batch keeps the attempts already made.
        """
        now = datetime.now(UTC)
        stats = CleanupStats()
        limit = limit or self.settings.avatar_cleanup_batch_size
        last_id = 0

        while stats.processed + stats.skipped < limit:
            deletion = self.next_due(now, last_id)
            if deletion is None:
                break
            last_id = deletion.id

            if self.referenced_keys(deletion.bucket, [deletion.object_key]):
                self.skip_referenced(deletion, now, stats)
            else:
                result = await self.storage.delete_object(deletion.bucket, deletion.object_key)
                self.record_attempt(deletion, result, now, stats)
            self.db.commit()

        # Ends the transaction opened by the final lookup
        self.db.commit()

        if stats.processed or stats.skipped:
            logger.info(
                f"Avatar cleanup: {stats.deleted} deleted, {stats.retried} retrying, "
                f"{stats.failed} abandoned, {stats.skipped} still in use"
            )
        return stats

    def skip_referenced(
        self, deletion: AvatarDeletion, now: datetime, stats: CleanupStats
    ) -> None:
        """Close a queued deletion whose key is back in use by a profile."""
        deletion.status = DeletionStatus.COMPLETED
        deletion.completed_at = now
        deletion.last_error = "still referenced"
        stats.skipped += 1
        logger.info(
            f"Kept avatar {deletion.bucket}/{deletion.object_key}: still referenced by a profile"
        )

    def record_attempt(
        self,
        deletion: AvatarDeletion,
        result: StorageDeleteResult,
        now: datetime,
        stats: CleanupStats,
    ) -> None:
        """Apply the outcome of one delete request to its outbox row."""
        stats.processed += 1
        deletion.attempts += 1
        deletion.last_status_code = result.status_code

        if result.ok:
            deletion.status = DeletionStatus.COMPLETED
            deletion.completed_at = now
            deletion.last_error = None
            stats.deleted += 1
            logger.info(f"Deleted avatar {deletion.bucket}/{deletion.object_key}")
            return

        deletion.last_error = result.error or result.body
        logger.warning(
            f"Failed to delete avatar {deletion.bucket}/{deletion.object_key}: "
            f"status={result.status_code} body={result.error or result.body!r}"
        )

        if deletion.attempts >= self.settings.avatar_delete_max_attempts:
            deletion.status = DeletionStatus.FAILED
            stats.failed += 1
            logger.warning(
                f"Giving up on avatar {deletion.bucket}/{deletion.object_key} "
                f"after {deletion.attempts} attempt(s)"
            )
            return

        backoff = self.settings.avatar_delete_retry_backoff_seconds * 2 ** (deletion.attempts - 1)
        deletion.next_attempt_at = now + timedelta(seconds=backoff)
        stats.retried += 1

    async def sweep_orphans(self, now: datetime | None = None) -> int:
        """Queue deletions for stored avatars no profile references.

        Objects younger than ``avatar_sweep_grace_seconds`` are left alone so
        uploads that haven't been saved to a profile yet survive. Returns the
        number of deletions queued.
        """
        now = now or datetime.now(UTC)
        bucket = self.settings.avatar_bucket
        cutoff = now - timedelta(seconds=self.settings.avatar_sweep_grace_seconds)

        stored = await self.storage.list_objects(bucket)

        referenced = self.referenced_keys(bucket)
        pending = {
            key
            for (key,) in self.db.query(AvatarDeletion.object_key)
            .filter(
                AvatarDeletion.bucket == bucket,
                AvatarDeletion.status == DeletionStatus.PENDING,
            )
            .all()
        }

        queued = 0
        for obj in stored:
            if obj.name in referenced or obj.name in pending:
                continue
            if obj.created_at is None or obj.created_at > cutoff:
                continue
            self.db.add(AvatarDeletion.for_key(bucket, obj.name, DeletionReason.ORPHAN_SWEEP))
            queued += 1

        self.db.commit()
        logger.info(f"Orphan sweep of {bucket}: {len(stored)} objects, {queued} queued")
        return queued
