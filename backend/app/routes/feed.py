"""
Feed API Routes

GET /feed and /feed/public accept an optional bearer token; the other feeds
require one.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.auth.dependencies import get_current_user, get_optional_identity
from app.auth.jwks import AuthIdentity
from app.database import get_session
from app.models.user import User
from app.services import feed_service
from app.services.feed_service import FeedPage

router = APIRouter()


@router.get("/feed", response_model=FeedPage)
@router.get("/feed/public", response_model=FeedPage)
def get_public_feed(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    identity: Optional[AuthIdentity] = Depends(get_optional_identity),
    session: Session = Depends(get_session),
):
    viewer_id = identity.user_id if identity else None
    return feed_service.list_public_feed(session, limit, offset, viewer_id=viewer_id)


@router.get("/feed/home", response_model=FeedPage)
def get_home_feed(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Own ACTIVE/PENDING_REVIEW requests, friends' public requests and group requests."""
    return feed_service.list_home_feed(session, user.id, limit, offset)


@router.get("/feed/groups", response_model=FeedPage)
def get_groups_feed(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return feed_service.list_groups_feed(session, user.id, limit, offset)


@router.get("/feed/friends", response_model=FeedPage)
def get_friends_feed(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return feed_service.list_friends_feed(session, user.id, limit, offset)
