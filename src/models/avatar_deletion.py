"""Outbox of avatar objects waiting to be removed from storage."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base
from src.models.enums import DeletionReason, DeletionStatus
from src.models.mixins import TimestampMixin


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AvatarDeletion(Base, TimestampMixin):
    """A storage delete committed together with the profile change that caused it."""

    __tablename__ = "avatar_deletions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    bucket: Mapped[str] = mapped_column(String(255), nullable=False)
    object_key: Mapped[str] = mapped_column(Text, nullable=False)
    # Not a foreign key: the profile is usually gone by the time this runs
    profile_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DeletionStatus.PENDING,
        index=True,
    )  # pending, completed, failed
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def for_key(
        cls,
        bucket: str,
        object_key: str,
        reason: DeletionReason,
        profile_id: uuid.UUID | None = None,
    ) -> "AvatarDeletion":
        """Build a pending deletion that is due immediately."""
        return cls(
            bucket=bucket,
            object_key=object_key,
            reason=reason,
            profile_id=profile_id,
            status=DeletionStatus.PENDING,
            attempts=0,
            next_attempt_at=_utcnow(),
        )

    def __repr__(self) -> str:
        return (
            f"<AvatarDeletion(id={self.id}, key={self.object_key}, "
            f"status={self.status}, attempts={self.attempts})>"
        )
