"""
Group Service

Groups, memberships and join requests.

Join policies:
- OPEN: joining creates the membership (or reactivates a soft-deleted one)
- REQUEST: joining creates a PENDING join request (or resets an existing one)
- INVITE_ONLY: self-service joining is always rejected, nothing is written

A group admin is the group's creator or an active member with role ADMIN.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import Session, select

from app.database import unit_of_work
from app.models.group import Group, GroupJoinPolicy, GroupJoinRequest, GroupMembership, GroupRole, JoinRequestStatus
from app.models.user import User
from app.services.errors import ForbiddenError, InviteOnlyGroupError, NotFoundError, ValidationError
from app.services.pagination import clamp_search_limit
from app.services.validation import parse_enum, require_length
from app.utils.sql import LIKE_ESCAPE, like_pattern

logger = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 3, 80
DESCRIPTION_MAX = 500


class JoinOutcome(str, Enum):
    JOINED = "JOINED"
    REQUESTED = "REQUESTED"
    ALREADY_MEMBER = "ALREADY_MEMBER"


@dataclass
class GroupSummary:
    id: str
    name: str
    description: str
    image_url: Optional[str]
    join_policy: str
    created_by: str
    created_at: datetime
    role: Optional[str] = None
    is_member: bool = False
    has_pending_request: bool = False

    @classmethod
    def from_group(cls, group: Group, **annotations) -> "GroupSummary":
        return cls(
            id=group.id,
            name=group.name,
            description=group.description,
            image_url=group.image_url,
            join_policy=GroupJoinPolicy(group.join_policy).value,
            created_by=group.created_by,
            created_at=group.created_at,
            **annotations,
        )


@dataclass
class JoinRequestSummary:
    id: str
    group_id: str
    user_id: str
    username: str
    display_name: str
    status: str
    requested_at: datetime


def get_group(session: Session, group_id: str) -> Group:
    group = session.get(Group, group_id)
    if group is None:
        raise NotFoundError("group not found", code="GROUP_NOT_FOUND")
    return group


def _membership(session: Session, group_id: str, user_id: str) -> Optional[GroupMembership]:
    """Membership row for the pair, including a soft-deleted one."""
    return session.exec(
        select(GroupMembership).where(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
    ).first()


def is_group_admin(session: Session, group_id: str, user_id: str) -> bool:
    group = session.get(Group, group_id)
    if group is None:
        return False
    if group.created_by == user_id:
        return True
    membership = _membership(session, group_id, user_id)
    return (
        membership is not None
        and membership.deleted_at is None
        and GroupRole(membership.role) == GroupRole.ADMIN
    )


def _require_admin(session: Session, group_id: str, user_id: str) -> None:
    if not is_group_admin(session, group_id, user_id):
        raise ForbiddenError("group admin access required", code="GROUP_ADMIN_REQUIRED")


def _activate_membership(session: Session, group_id: str, user_id: str, role: GroupRole = GroupRole.MEMBER) -> None:
    """Create the membership or clear deleted_at on an existing one (role kept)."""
    membership = _membership(session, group_id, user_id)
    if membership is None:
        session.add(GroupMembership(group_id=group_id, user_id=user_id, role=role))
        return
    if membership.deleted_at is not None:
        membership.deleted_at = None
        membership.updated_at = datetime.utcnow()
        session.add(membership)


def create_group(
    session: Session,
    user_id: str,
    name: str,
    description: str = "",
    image_url: Optional[str] = None,
    join_policy=None,
) -> Group:
    """Create a group and make the creator its ADMIN in one transaction."""
    name = require_length(name, "group name", NAME_MIN, NAME_MAX)
    description = (description or "").strip()
    if len(description) > DESCRIPTION_MAX:
        raise ValidationError("invalid group description")
    policy = GroupJoinPolicy.REQUEST if not join_policy else parse_enum(GroupJoinPolicy, join_policy, "join policy")

    group = Group(
        name=name,
        description=description,
        image_url=(image_url or "").strip() or None,
        join_policy=policy,
        created_by=user_id,
    )
    with unit_of_work(session):
        session.add(group)
        session.flush()
        session.add(GroupMembership(group_id=group.id, user_id=user_id, role=GroupRole.ADMIN))

    session.refresh(group)
    logger.info(f"Group {group.id} ({policy.value}) created by {user_id}")
    return group


def list_user_groups(session: Session, user_id: str) -> List[GroupSummary]:
    """Groups where user_id is an active member, newest first, with the user's role."""
    rows = session.exec(
        select(Group, GroupMembership.role)
        .join(GroupMembership, GroupMembership.group_id == Group.id)
        .where(GroupMembership.user_id == user_id, GroupMembership.deleted_at.is_(None))
        .order_by(Group.created_at.desc(), Group.id)
    ).all()
    return [GroupSummary.from_group(group, role=GroupRole(role).value, is_member=True) for group, role in rows]


def search_groups(session: Session, user_id: str, query: str = "", limit: int = None) -> List[GroupSummary]:
    """Case-insensitive substring search on group name, annotated for user_id."""
    pattern = like_pattern((query or "").strip())
    groups = session.exec(
        select(Group)
        .where(Group.name.ilike(pattern, escape=LIKE_ESCAPE))
        .order_by(Group.name, Group.id)
        .limit(clamp_search_limit(limit))
    ).all()
    if not groups:
        return []

    group_ids = [g.id for g in groups]
    roles = {
        group_id: role
        for group_id, role in session.exec(
            select(GroupMembership.group_id, GroupMembership.role).where(
                GroupMembership.user_id == user_id,
                GroupMembership.deleted_at.is_(None),
                GroupMembership.group_id.in_(group_ids),
            )
        ).all()
    }
    pending = set(
        session.exec(
            select(GroupJoinRequest.group_id).where(
                GroupJoinRequest.user_id == user_id,
                GroupJoinRequest.status == JoinRequestStatus.PENDING,
                GroupJoinRequest.group_id.in_(group_ids),
            )
        ).all()
    )
    return [
        GroupSummary.from_group(
            group,
            role=GroupRole(roles[group.id]).value if group.id in roles else None,
            is_member=group.id in roles,
            has_pending_request=group.id in pending,
        )
        for group in groups
    ]


def request_join_group(session: Session, group_id: str, user_id: str) -> JoinOutcome:
    """
    Apply the group's join policy for user_id.

    Raises:
        NotFoundError: unknown group
        InviteOnlyGroupError: group is INVITE_ONLY (nothing is written)
    """
    group = get_group(session, group_id)
    policy = GroupJoinPolicy(group.join_policy)
    if policy == GroupJoinPolicy.INVITE_ONLY:
        raise InviteOnlyGroupError()

    membership = _membership(session, group_id, user_id)
    if membership is not None and membership.deleted_at is None:
        return JoinOutcome.ALREADY_MEMBER

    with unit_of_work(session):
        if policy == GroupJoinPolicy.OPEN:
            _activate_membership(session, group_id, user_id)
            outcome = JoinOutcome.JOINED
        else:
            join_request = session.exec(
                select(GroupJoinRequest).where(GroupJoinRequest.group_id == group_id, GroupJoinRequest.user_id == user_id)
            ).first()
            if join_request is None:
                join_request = GroupJoinRequest(group_id=group_id, user_id=user_id)
            join_request.status = JoinRequestStatus.PENDING
            join_request.requested_at = datetime.utcnow()
            join_request.reviewed_at = None
            join_request.reviewed_by = None
            session.add(join_request)
            outcome = JoinOutcome.REQUESTED

    logger.info(f"Join group {group_id} by {user_id}: {outcome.value}")
    return outcome


def list_join_requests(session: Session, group_id: str, actor_id: str) -> List[JoinRequestSummary]:
    """Pending join requests for an admin, oldest first."""
    _require_admin(session, group_id, actor_id)
    rows = session.exec(
        select(GroupJoinRequest, User)
        .join(User, User.id == GroupJoinRequest.user_id)
        .where(GroupJoinRequest.group_id == group_id, GroupJoinRequest.status == JoinRequestStatus.PENDING)
        .order_by(GroupJoinRequest.requested_at, GroupJoinRequest.id)
    ).all()
    return [
        JoinRequestSummary(
            id=join_request.id,
            group_id=join_request.group_id,
            user_id=join_request.user_id,
            username=user.username,
            display_name=user.display_name,
            status=JoinRequestStatus(join_request.status).value,
            requested_at=join_request.requested_at,
        )
        for join_request, user in rows
    ]


def approve_join_request(session: Session, group_id: str, request_id: str, actor_id: str) -> GroupJoinRequest:
    """
    Approve a PENDING join request and activate the membership in one transaction.

    Raises:
        ForbiddenError: actor is not a group admin
        NotFoundError: no PENDING request with that id in this group
    """
    _require_admin(session, group_id, actor_id)

    join_request = session.get(GroupJoinRequest, request_id)
    if (
        join_request is None
        or join_request.group_id != group_id
        or JoinRequestStatus(join_request.status) != JoinRequestStatus.PENDING
    ):
        raise NotFoundError("join request not found", code="JOIN_REQUEST_NOT_FOUND")

    with unit_of_work(session):
        join_request.status = JoinRequestStatus.APPROVED
        join_request.reviewed_at = datetime.utcnow()
        join_request.reviewed_by = actor_id
        session.add(join_request)
        _activate_membership(session, group_id, join_request.user_id)

    session.refresh(join_request)
    logger.info(f"Join request {request_id} for group {group_id} approved by {actor_id}")
    return join_request
