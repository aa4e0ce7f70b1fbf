"""
Profile API Routes
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from app.auth.dependencies import get_current_user, get_optional_identity
from app.auth.jwks import AuthIdentity
from app.database import get_session
from app.models.user import User
from app.services import profile_service

router = APIRouter()


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool


@router.get("/profile", response_model=ProfileResponse)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch("/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return profile_service.update_profile(
        session,
        user.id,
        display_name=payload.display_name,
        username=payload.username,
        avatar_url=payload.avatar_url,
    )


@router.get("/username-availability", response_model=UsernameAvailabilityResponse)
def username_availability(
    username: str = Query(...),
    identity: Optional[AuthIdentity] = Depends(get_optional_identity),
    session: Session = Depends(get_session),
):
    """A signed-in caller's own username counts as available to them."""
    user_id = identity.user_id if identity else None
    available = profile_service.is_username_available(session, username, user_id=user_id)
    return UsernameAvailabilityResponse(username=profile_service.normalize_username(username), available=available)
