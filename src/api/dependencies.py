"""FastAPI dependencies for authentication and database."""

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.database import get_db
from src.models.profile import Profile
from src.models.user import User
from src.services.auth import decode_access_token

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid authentication credentials")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _unauthorized("Invalid authentication credentials") from None

    user = db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")

    return user


def get_own_profile(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> Profile:
    """Get the caller's profile; only the owner may modify it."""
    profile = db.get(Profile, current_user.id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


def own_profile_for_update(db: Session, user_id: uuid.UUID):
    """Query for the caller's profile that locks the row until commit.

    Concurrent edits of one profile then serialize, and each edit sees the
    avatar the previous one committed as its old value.
    """
    return (
        db.query(Profile)
        .filter(Profile.id == user_id)
        .with_for_update()
        .populate_existing()
    )


def get_own_profile_for_update(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> Profile:
    """Get the caller's profile, locked for modification."""
    profile = own_profile_for_update(db, current_user.id).one_or_none()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile
