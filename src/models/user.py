"""User model."""

import uuid

from sqlalchemy import JSON, Column, String, Uuid
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """Identity record; its profile is created and removed alongside it."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    raw_user_meta_data = Column(JSON, nullable=True)  # signup metadata (full_name, avatar_url)

    # No delete cascade: the lifecycle handlers delete the profile explicitly
    profile = relationship("Profile", back_populates="user", uselist=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
