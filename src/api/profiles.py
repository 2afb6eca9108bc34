"""Profile API endpoints.

Profiles are publicly readable; only the owner may create, edit or delete
their own profile.
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.dependencies import get_current_user, get_own_profile, get_own_profile_for_update
from src.database import get_db
from src.models.profile import Profile
from src.models.user import User
from src.schemas.profile import ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


def _commit_profile(db: Session, profile: Profile) -> Profile:
    """Commit profile changes, reporting constraint violations to the caller."""
    profile_id = profile.id
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info(f"Rejected profile change for {profile_id}: {e.orig}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already taken",
        ) from None
    db.refresh(profile)
    return profile


@router.get("", response_model=list[ProfileResponse])
async def list_profiles(
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """List profiles."""
    return (
        db.query(Profile)
        .order_by(Profile.username.is_(None), Profile.username, Profile.id)
        .offset(offset)
        .limit(limit)
        .all()
    )


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    profile: Annotated[Profile, Depends(get_own_profile)],
):
    """Get the caller's profile."""
    return profile


@router.post("/me", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_my_profile(
    profile_data: ProfileUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Recreate the caller's profile after it was deleted."""
    if db.get(Profile, current_user.id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Profile already exists",
        )

    profile = Profile(id=current_user.id, **profile_data.model_dump())
    db.add(profile)
    return _commit_profile(db, profile)


@router.put("/me", response_model=ProfileResponse)
async def update_my_profile(
    profile_data: ProfileUpdate,
    profile: Annotated[Profile, Depends(get_own_profile_for_update)],
    db: Annotated[Session, Depends(get_db)],
):
    """Update the caller's profile.

    Replacing or clearing the avatar queues the previous object for deletion.
    """
    for field, value in profile_data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)

    return _commit_profile(db, profile)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_profile(
    profile: Annotated[Profile, Depends(get_own_profile_for_update)],
    db: Annotated[Session, Depends(get_db)],
):
    """Delete the caller's profile. The avatar is queued for deletion."""
    db.delete(profile)
    db.commit()


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
):
    """Get a profile by id."""
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile
