"""
Feed Service

Each feed is expressed as a query of request ids (a visibility rule). The
same id query drives both the page of rows and an independent exact count,
so total_pages is computed the same way whether the page is empty or not.

Feeds:
- public:  PUBLIC + ACTIVE
- groups:  attached to a group where the caller is an active member, ACTIVE
- friends: PUBLIC + ACTIVE authored by an accepted friend
- home:    own ACTIVE/PENDING_REVIEW + friends + groups, deduplicated

All feeds exclude soft-deleted rows and are ordered newest first with the id
as tie-breaker.
"""

from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import case, func, or_, union
from sqlmodel import Session, select

from app.models.friendship import Friendship, FriendshipStatus
from app.models.prayer_request import PrayerRequest, PrayerRequestGroup, PrayerStatus, Visibility
from app.services.enrichment import PrayerRequestView, enrich
from app.services.pagination import PageWindow, clamp_page, page_number, total_pages
from app.services.prayer_service import active_group_ids


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class FeedPage(BaseModel):
    items: List[PrayerRequestView]
    pagination: Pagination


# ============================================================================
# Visibility rules as id queries
# ============================================================================


def friend_ids(user_id: str):
    """Ids of users with an ACCEPTED friendship with user_id, whichever side sent it."""
    return select(
        case(
            (Friendship.requester_id == user_id, Friendship.addressee_id),
            else_=Friendship.requester_id,
        )
    ).where(
        or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
        Friendship.status == FriendshipStatus.ACCEPTED,
    )


def public_request_ids():
    return select(PrayerRequest.id.label("id")).where(
        PrayerRequest.visibility == Visibility.PUBLIC,
        PrayerRequest.status == PrayerStatus.ACTIVE,
        PrayerRequest.deleted_at.is_(None),
    )


def group_request_ids(user_id: str):
    return (
        select(PrayerRequestGroup.prayer_request_id.label("id"))
        .join(PrayerRequest, PrayerRequest.id == PrayerRequestGroup.prayer_request_id)
        .where(
            PrayerRequestGroup.group_id.in_(active_group_ids(user_id)),
            PrayerRequest.status == PrayerStatus.ACTIVE,
            PrayerRequest.deleted_at.is_(None),
        )
        .distinct()
    )


def friend_request_ids(user_id: str):
    return select(PrayerRequest.id.label("id")).where(
        PrayerRequest.author_id.in_(friend_ids(user_id)),
        PrayerRequest.visibility == Visibility.PUBLIC,
        PrayerRequest.status == PrayerStatus.ACTIVE,
        PrayerRequest.deleted_at.is_(None),
    )


def own_request_ids(user_id: str):
    # PENDING_REVIEW only exists on legacy rows but stays visible to its author here
    return select(PrayerRequest.id.label("id")).where(
        PrayerRequest.author_id == user_id,
        PrayerRequest.status.in_([PrayerStatus.ACTIVE, PrayerStatus.PENDING_REVIEW]),
        PrayerRequest.deleted_at.is_(None),
    )


def home_request_ids(user_id: str):
    # UNION (not UNION ALL) removes requests reachable through several scopes
    return union(own_request_ids(user_id), friend_request_ids(user_id), group_request_ids(user_id))


# ============================================================================
# Paging
# ============================================================================


def _feed_page(session: Session, id_query, window: PageWindow, viewer_id: Optional[str]) -> FeedPage:
    ids = id_query.subquery()
    total = session.exec(select(func.count()).select_from(ids)).one()

    requests = session.exec(
        select(PrayerRequest)
        .where(PrayerRequest.id.in_(select(ids.c.id)))
        .order_by(PrayerRequest.created_at.desc(), PrayerRequest.id.desc())
        .offset(window.offset)
        .limit(window.limit)
    ).all()

    return FeedPage(
        items=enrich(session, requests, viewer_id),
        pagination=Pagination(
            page=page_number(window),
            page_size=window.limit,
            total=total,
            total_pages=total_pages(total, window.limit),
        ),
    )


def list_public_feed(
    session: Session, limit: int = None, offset: int = None, viewer_id: Optional[str] = None
) -> FeedPage:
    """Public feed; viewer_id (optional) only adds the viewer's own action types."""
    return _feed_page(session, public_request_ids(), clamp_page(limit, offset), viewer_id)


def list_groups_feed(session: Session, user_id: str, limit: int = None, offset: int = None) -> FeedPage:
    return _feed_page(session, group_request_ids(user_id), clamp_page(limit, offset), user_id)


def list_friends_feed(session: Session, user_id: str, limit: int = None, offset: int = None) -> FeedPage:
    return _feed_page(session, friend_request_ids(user_id), clamp_page(limit, offset), user_id)


def list_home_feed(session: Session, user_id: str, limit: int = None, offset: int = None) -> FeedPage:
    return _feed_page(session, home_request_ids(user_id), clamp_page(limit, offset), user_id)
