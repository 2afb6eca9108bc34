"""SQLAlchemy models."""

from src.models.avatar_deletion import AvatarDeletion
from src.models.profile import Profile
from src.models.user import User

# Handlers reference the mapped classes, so register them last
from src.services import profile_lifecycle  # noqa: E402, F401, I001

__all__ = [
    "User",
    "Profile",
    "AvatarDeletion",
]
