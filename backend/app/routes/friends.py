"""
Friends API Routes
Friend list, friend requests and user search for new friends.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from app.auth.dependencies import get_current_user
from app.database import get_session
from app.models.user import User
from app.services import friend_service

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class FriendRequestCreate(BaseModel):
    username: str


class FriendResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    connected_at: datetime


class FriendListResponse(BaseModel):
    items: List[FriendResponse]


class PendingFriendRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    from_user_id: str
    username: str
    display_name: str
    requested_at: datetime


class PendingFriendRequestListResponse(BaseModel):
    items: List[PendingFriendRequestResponse]


class FriendshipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    requester_id: str
    addressee_id: str
    status: str
    created_at: datetime
    updated_at: datetime


class UserSearchResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None


class UserSearchResponse(BaseModel):
    items: List[UserSearchResult]


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/friends", response_model=FriendListResponse)
def list_friends(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return {"items": friend_service.list_friends(session, user.id)}


@router.get("/friends/requests", response_model=PendingFriendRequestListResponse)
def list_pending_requests(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return {"items": friend_service.list_pending_friend_requests(session, user.id)}


@router.post("/friends/requests", response_model=FriendshipResponse, status_code=201)
def send_friend_request(
    payload: FriendRequestCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return friend_service.send_friend_request(session, user.id, payload.username)


@router.post("/friends/requests/{request_id}/accept", response_model=FriendshipResponse)
def accept_friend_request(
    request_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return friend_service.accept_friend_request(session, user.id, request_id)


@router.get("/users/search", response_model=UserSearchResponse)
def search_users(
    q: str = Query(""),
    limit: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"items": friend_service.search_users(session, user.id, q, limit)}
