"""Enums for model fields."""

from enum import StrEnum


class DeletionStatus(StrEnum):
    """Processing state of a queued avatar deletion."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DeletionReason(StrEnum):
    """Why an avatar object was queued for deletion."""

    AVATAR_REPLACED = "avatar_replaced"
    PROFILE_DELETED = "profile_deleted"
    ORPHAN_SWEEP = "orphan_sweep"
