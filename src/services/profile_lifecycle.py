"""Keeps profiles and their avatar objects in step with user and profile changes.

- A new user gets a default profile seeded from signup metadata.
- A user being deleted has its profile deleted first, in the same flush.
- A profile whose non-empty avatar is replaced, or which is deleted, queues a
  storage delete of the superseded object in the avatar deletion outbox.

Storage is never called from here. The outbox row commits with the profile
change and ``AvatarCleanupService`` performs the delete afterwards, so a slow
or failing storage API can't block or roll back profile edits.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from src.config import get_settings
from src.models.avatar_deletion import AvatarDeletion
from src.models.enums import DeletionReason
from src.models.profile import Profile
from src.models.user import User
from src.services.change_events import ChangeEvent, ChangeOperation, dispatcher

logger = logging.getLogger(__name__)


@dispatcher.subscribe("users", ChangeOperation.INSERT)
def create_profile_for_new_user(session: Session, change: ChangeEvent) -> None:
    """Insert the default profile for a newly created user."""
    user: User = change.instance
    if user.profile is not None:
        return

    # The profile shares the user's id, so assign it before the column default would
    if user.id is None:
        user.id = uuid.uuid4()

    metadata = user.raw_user_meta_data or {}
    session.add(
        Profile(
            id=user.id,
            full_name=metadata.get("full_name"),
            avatar_url=metadata.get("avatar_url"),
        )
    )
    logger.info(f"Created profile for new user {user.id}")


@dispatcher.subscribe("users", ChangeOperation.DELETE)
def delete_profile_of_deleted_user(session: Session, change: ChangeEvent) -> None:
    """Delete the user's profile ahead of the user row."""
    user_id = change.old.get("id")
    profile = session.get(Profile, user_id)
    if profile is None or profile in session.deleted:
        return
    session.delete(profile)
    logger.info(f"Deleting profile of deleted user {user_id}")


@dispatcher.subscribe("profiles", ChangeOperation.UPDATE)
def queue_replaced_avatar(session: Session, change: ChangeEvent) -> None:
    """Queue deletion of the previous avatar when avatar_url changes."""
    if not change.changed("avatar_url"):
        return
    queue_avatar_deletion(
        session,
        change.old.get("avatar_url"),
        DeletionReason.AVATAR_REPLACED,
        profile_id=change.old.get("id"),
    )


@dispatcher.subscribe("profiles", ChangeOperation.DELETE)
def queue_deleted_profile_avatar(session: Session, change: ChangeEvent) -> None:
    """Queue deletion of the avatar of a deleted profile."""
    queue_avatar_deletion(
        session,
        change.old.get("avatar_url"),
        DeletionReason.PROFILE_DELETED,
        profile_id=change.old.get("id"),
    )


def queue_avatar_deletion(
    session: Session,
    object_key: str | None,
    reason: DeletionReason,
    profile_id: uuid.UUID | None = None,
) -> AvatarDeletion | None:
    """Add an outbox row for ``object_key``; empty keys are ignored."""
    if not object_key:
        return None

    bucket = get_settings().avatar_bucket
    deletion = AvatarDeletion.for_key(bucket, object_key, reason, profile_id=profile_id)
    session.add(deletion)
    logger.info(f"Queued deletion of {bucket}/{object_key} ({reason})")
    return deletion
