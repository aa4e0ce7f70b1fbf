"""
Friend Service

Friendships are stored as one row per unordered pair. The requester sends,
the addressee accepts; once ACCEPTED the relationship is symmetric. There is
no reject or cancel transition.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models.friendship import Friendship, FriendshipStatus, friendship_pair_key
from app.models.user import User
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.pagination import clamp_search_limit
from app.services.profile_service import is_valid_username, normalize_username
from app.utils.sql import LIKE_ESCAPE, like_pattern

logger = logging.getLogger(__name__)


@dataclass
class FriendSummary:
    user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str]
    connected_at: datetime


@dataclass
class FriendRequestSummary:
    id: str
    from_user_id: str
    username: str
    display_name: str
    requested_at: datetime


@dataclass
class UserSummary:
    user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str]


def send_friend_request(session: Session, from_user_id: str, target_username: str) -> Friendship:
    """
    Send a PENDING friend request to the user holding target_username.

    Raises:
        ValidationError: malformed username or targeting oneself
        NotFoundError: no such user
        ConflictError: a friendship row (pending or accepted) already links the pair
    """
    username = normalize_username(target_username)
    if not is_valid_username(username):
        raise ValidationError("invalid username")

    target = session.exec(select(User).where(User.username == username, User.deleted_at.is_(None))).first()
    if target is None:
        raise NotFoundError("user not found", code="USER_NOT_FOUND")
    if target.id == from_user_id:
        raise ValidationError("cannot add yourself", code="CANNOT_ADD_SELF")

    pair_key = friendship_pair_key(from_user_id, target.id)
    existing = session.exec(select(Friendship).where(Friendship.pair_key == pair_key)).first()
    if existing is not None:
        raise ConflictError("friend request already exists", code="FRIEND_REQUEST_EXISTS")

    friendship = Friendship(requester_id=from_user_id, addressee_id=target.id, pair_key=pair_key)
    session.add(friendship)
    try:
        session.commit()
    except IntegrityError:
        # The opposite request won the race for the pair
        session.rollback()
        raise ConflictError("friend request already exists", code="FRIEND_REQUEST_EXISTS")
    session.refresh(friendship)
    logger.info(f"Friend request {friendship.id} from {from_user_id} to {target.id}")
    return friendship


def accept_friend_request(session: Session, user_id: str, request_id: str) -> Friendship:
    """Only the addressee may accept, and only while PENDING."""
    friendship = session.get(Friendship, request_id)
    if (
        friendship is None
        or friendship.addressee_id != user_id
        or FriendshipStatus(friendship.status) != FriendshipStatus.PENDING
    ):
        raise NotFoundError("friend request not found", code="FRIEND_REQUEST_NOT_FOUND")

    friendship.status = FriendshipStatus.ACCEPTED
    friendship.updated_at = datetime.utcnow()
    session.add(friendship)
    session.commit()
    session.refresh(friendship)
    return friendship


def list_friends(session: Session, user_id: str) -> List[FriendSummary]:
    """Accepted friends, most recently connected first."""
    friend_id = case(
        (Friendship.requester_id == user_id, Friendship.addressee_id),
        else_=Friendship.requester_id,
    )
    rows = session.exec(
        select(User, Friendship.updated_at)
        .join(Friendship, User.id == friend_id)
        .where(
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
            Friendship.status == FriendshipStatus.ACCEPTED,
            User.deleted_at.is_(None),
        )
        .order_by(Friendship.updated_at.desc(), User.id)
    ).all()
    return [
        FriendSummary(
            user_id=user.id,
            username=user.username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            connected_at=connected_at,
        )
        for user, connected_at in rows
    ]


def list_pending_friend_requests(session: Session, user_id: str) -> List[FriendRequestSummary]:
    """PENDING requests addressed to user_id, oldest first."""
    rows = session.exec(
        select(Friendship, User)
        .join(User, User.id == Friendship.requester_id)
        .where(
            Friendship.addressee_id == user_id,
            Friendship.status == FriendshipStatus.PENDING,
            User.deleted_at.is_(None),
        )
        .order_by(Friendship.created_at, Friendship.id)
    ).all()
    return [
        FriendRequestSummary(
            id=friendship.id,
            from_user_id=user.id,
            username=user.username,
            display_name=user.display_name,
            requested_at=friendship.created_at,
        )
        for friendship, user in rows
    ]


def search_users(session: Session, user_id: str, query: str = "", limit: int = None) -> List[UserSummary]:
    """
    Candidates for a friend request.

    Matches a case-insensitive username prefix or display-name substring.
    Excludes the caller and anyone already linked by a friendship row,
    pending or accepted, in either direction.
    """
    term = normalize_username(query) if (query or "").strip().startswith("@") else (query or "").strip()
    connected = (
        select(Friendship.id)
        .where(
            or_(
                and_(Friendship.requester_id == user_id, Friendship.addressee_id == User.id),
                and_(Friendship.requester_id == User.id, Friendship.addressee_id == user_id),
            )
        )
        .exists()
    )
    users = session.exec(
        select(User)
        .where(
            User.id != user_id,
            User.deleted_at.is_(None),
            or_(
                func.lower(User.username).like(like_pattern(term, prefix=True), escape=LIKE_ESCAPE),
                func.lower(User.display_name).like(like_pattern(term), escape=LIKE_ESCAPE),
            ),
            ~connected,
        )
        .order_by(User.display_name, User.username)
        .limit(clamp_search_limit(limit))
    ).all()
    return [
        UserSummary(user_id=u.id, username=u.username, display_name=u.display_name, avatar_url=u.avatar_url)
        for u in users
    ]
