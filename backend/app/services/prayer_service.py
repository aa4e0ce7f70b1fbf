"""
Prayer Request Service

Visibility rules and write-side authorization for prayer requests and
prayer actions.

A request is visible to a caller when:
1. the caller is the author, or
2. it is PUBLIC and ACTIVE, or
3. it is GROUP_ONLY and ACTIVE and the caller is an active member of at
   least one attached group.
Soft-deleted requests are visible to nobody. An invisible request is
reported exactly like a missing one.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, insert, literal, or_, update
from sqlmodel import Session, select

from app.config import settings
from app.database import unit_of_work
from app.models.group import GroupMembership
from app.models.prayer_action import PrayerAction, PrayerActionType
from app.models.prayer_request import PrayerCategory, PrayerRequest, PrayerRequestGroup, PrayerStatus, Visibility
from app.services.errors import ForbiddenError, NotFoundError, RateLimitedError, ValidationError
from app.services.validation import parse_enum, require_length, unique_ids

logger = logging.getLogger(__name__)

TITLE_MIN, TITLE_MAX = 3, 120
BODY_MIN, BODY_MAX = 10, 4000


# ============================================================================
# Visibility
# ============================================================================


def active_group_ids(user_id: str):
    """Subquery of group ids where user_id holds a non-deleted membership."""
    return select(GroupMembership.group_id).where(
        GroupMembership.user_id == user_id,
        GroupMembership.deleted_at.is_(None),
    )


def visible_to(viewer_id: Optional[str]):
    """WHERE clause selecting the requests viewer_id may see (deleted rows excluded)."""
    public_active = and_(
        PrayerRequest.visibility == Visibility.PUBLIC,
        PrayerRequest.status == PrayerStatus.ACTIVE,
    )
    if not viewer_id:
        return and_(PrayerRequest.deleted_at.is_(None), public_active)

    shared_group = (
        select(PrayerRequestGroup.prayer_request_id)
        .where(
            PrayerRequestGroup.prayer_request_id == PrayerRequest.id,
            PrayerRequestGroup.group_id.in_(active_group_ids(viewer_id)),
        )
        .exists()
    )
    group_active = and_(
        PrayerRequest.visibility == Visibility.GROUP_ONLY,
        PrayerRequest.status == PrayerStatus.ACTIVE,
        shared_group,
    )
    return and_(
        PrayerRequest.deleted_at.is_(None),
        or_(PrayerRequest.author_id == viewer_id, public_active, group_active),
    )


def get_prayer_request(session: Session, request_id: str, viewer_id: Optional[str] = None) -> PrayerRequest:
    """Fetch one request if visible to viewer_id, else NotFoundError."""
    request = session.exec(select(PrayerRequest).where(PrayerRequest.id == request_id, visible_to(viewer_id))).first()
    if request is None:
        raise NotFoundError("prayer request not found")
    return request


# ============================================================================
# Create / Update / Delete
# ============================================================================


def _validated_fields(title, body, category, visibility, group_ids):
    title = require_length(title, "title", TITLE_MIN, TITLE_MAX)
    body = require_length(body, "body", BODY_MIN, BODY_MAX)
    category = parse_enum(PrayerCategory, category, "category")
    visibility = parse_enum(Visibility, visibility, "visibility")

    group_ids = unique_ids(group_ids)
    if visibility == Visibility.GROUP_ONLY and not group_ids:
        raise ValidationError("groupIds required")
    if visibility == Visibility.PRIVATE and group_ids:
        raise ValidationError("groupIds not allowed for private requests")
    return title, body, category, visibility, group_ids


def _require_memberships(session: Session, user_id: str, group_ids: Iterable[str]) -> None:
    """Every group must have an active membership for user_id; unknown groups fail too."""
    group_ids = list(group_ids)
    if not group_ids:
        return
    held = set(
        session.exec(
            select(GroupMembership.group_id).where(
                GroupMembership.user_id == user_id,
                GroupMembership.deleted_at.is_(None),
                GroupMembership.group_id.in_(group_ids),
            )
        ).all()
    )
    missing = [gid for gid in group_ids if gid not in held]
    if missing:
        raise ForbiddenError("not a member of group", code="GROUP_ACCESS_DENIED")


def _attach_groups(session: Session, request_id: str, group_ids: List[str]) -> None:
    for group_id in group_ids:
        session.add(PrayerRequestGroup(prayer_request_id=request_id, group_id=group_id))


def create_prayer_request(
    session: Session,
    author_id: str,
    title: str,
    body: str,
    category,
    visibility,
    allow_anonymous: bool = False,
    group_ids: Optional[List[str]] = None,
) -> PrayerRequest:
    """
    Create an ACTIVE request with its group attachments in one transaction.

    Raises:
        ValidationError: field lengths, enums or group-id policy
        ForbiddenError: author is not an active member of every group
    """
    title, body, category, visibility, group_ids = _validated_fields(title, body, category, visibility, group_ids)

    request = PrayerRequest(
        author_id=author_id,
        title=title,
        body=body,
        category=category,
        visibility=visibility,
        allow_anonymous=bool(allow_anonymous),
        status=PrayerStatus.ACTIVE,
        prayed_count=0,
    )
    with unit_of_work(session):
        _require_memberships(session, author_id, group_ids)
        session.add(request)
        session.flush()
        _attach_groups(session, request.id, group_ids)

    session.refresh(request)
    logger.info(f"Prayer request {request.id} created by {author_id} ({visibility.value}, {len(group_ids)} group(s))")
    return request


def _authored_request(session: Session, request_id: str, author_id: str) -> PrayerRequest:
    request = get_prayer_request(session, request_id, author_id)
    if request.author_id != author_id:
        raise ForbiddenError("only the author can modify this prayer request")
    return request


def update_prayer_request(
    session: Session,
    request_id: str,
    author_id: str,
    title: str,
    body: str,
    category,
    visibility,
    allow_anonymous: bool = False,
    group_ids: Optional[List[str]] = None,
) -> PrayerRequest:
    """
    Replace the editable fields and group attachments of a request.

    The stored status is kept. Group links are deleted and re-inserted in the
    same transaction as the field update, so a failed membership check leaves
    the request untouched.
    """
    request = _authored_request(session, request_id, author_id)
    title, body, category, visibility, group_ids = _validated_fields(title, body, category, visibility, group_ids)

    with unit_of_work(session):
        _require_memberships(session, author_id, group_ids)
        request.title = title
        request.body = body
        request.category = category
        request.visibility = visibility
        request.allow_anonymous = bool(allow_anonymous)
        request.updated_at = datetime.utcnow()
        session.add(request)
        session.execute(delete(PrayerRequestGroup).where(PrayerRequestGroup.prayer_request_id == request.id))
        _attach_groups(session, request.id, group_ids)

    session.refresh(request)
    return request


def delete_prayer_request(session: Session, request_id: str, author_id: str) -> None:
    """Soft-delete: ARCHIVED plus deleted_at. A second delete is NotFoundError."""
    request = _authored_request(session, request_id, author_id)
    now = datetime.utcnow()
    with unit_of_work(session):
        request.status = PrayerStatus.ARCHIVED
        request.deleted_at = now
        request.updated_at = now
        session.add(request)
    logger.info(f"Prayer request {request_id} archived by {author_id}")


# ============================================================================
# Prayer actions
# ============================================================================


def request_row_lock(request_id: str):
    """SELECT ... FOR UPDATE on one request row."""
    return select(PrayerRequest.id).where(PrayerRequest.id == request_id).with_for_update()


def effective_window_hours(window_hours: Optional[int] = None) -> int:
    """Below 1 falls back to the configured default; capped at the configured maximum."""
    if window_hours is None or window_hours < 1:
        window_hours = settings.prayed_window_hours
    return max(1, min(window_hours, settings.prayed_window_max_hours))


def record_prayer_action(
    session: Session,
    request_id: str,
    user_id: str,
    action_type,
    window_hours: Optional[int] = None,
) -> PrayerRequest:
    """
    Record a typed prayer action and bump the request's prayed count.

    The duplicate check and the insert are one INSERT ... SELECT ... WHERE
    NOT EXISTS statement, run while holding a lock on the request row, so of
    several identical concurrent calls inside the window only one inserts a
    row. The window is exclusive at its start.

    Raises:
        NotFoundError: request missing or not visible to user_id
        ValidationError: unknown action type
        RateLimitedError: same (user, request, type) already inside the window
    """
    action_type = parse_enum(PrayerActionType, action_type, "actionType")
    request = get_prayer_request(session, request_id, user_id)
    hours = effective_window_hours(window_hours)

    now = datetime.utcnow()
    window_start = now - timedelta(hours=hours)
    actions = PrayerAction.__table__
    already_prayed = (
        select(PrayerAction.id)
        .where(
            PrayerAction.user_id == user_id,
            PrayerAction.prayer_request_id == request.id,
            PrayerAction.action_type == action_type.value,
            PrayerAction.created_at > window_start,
        )
        .correlate(None)
        .exists()
    )
    new_action = select(
        literal(str(uuid.uuid4()), actions.c.id.type),
        literal(user_id, actions.c.user_id.type),
        literal(request.id, actions.c.prayer_request_id.type),
        literal(action_type.value, actions.c.action_type.type),
        literal(now, actions.c.created_at.type),
    ).where(~already_prayed)
    insert_if_absent = insert(actions).from_select(
        ["id", "user_id", "prayer_request_id", "action_type", "created_at"],
        new_action,
    )

    with unit_of_work(session):
        # Identical calls queue here until the first commits (no-op on SQLite)
        session.exec(request_row_lock(request.id)).first()
        inserted = session.execute(insert_if_absent).rowcount
        if inserted:
            session.execute(
                update(PrayerRequest.__table__)
                .where(PrayerRequest.__table__.c.id == request.id)
                .values(prayed_count=PrayerRequest.__table__.c.prayed_count + 1)
            )

    if not inserted:
        logger.info(f"Prayer action {action_type.value} by {user_id} on {request.id} rate limited ({hours}h window)")
        raise RateLimitedError("already prayed recently", code="PRAYED_RATE_LIMITED")

    session.refresh(request)
    return request
