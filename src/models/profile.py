"""Profile model."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base

USERNAME_MIN_LENGTH = 3


class Profile(Base):
    """Public profile, one per user, sharing the user's id."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(
            f"length(username) >= {USERNAME_MIN_LENGTH}", name="username_length"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )
    username: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Key into the avatars bucket. The old value is always loaded on change so
    # the superseded object can be queued for deletion.
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True, active_history=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)

    user = relationship("User", back_populates="profile")

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, username={self.username})>"
