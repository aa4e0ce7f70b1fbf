"""
Bulk enrichment of prayer requests for listings and single fetches.

Each batch costs a fixed number of queries regardless of its size:
authors, group links, per-type counts and (for a known caller) the
caller's own action types.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from app.models.group import Group
from app.models.prayer_action import PrayerAction, PrayerActionType
from app.models.prayer_request import PrayerCategory, PrayerRequest, PrayerRequestGroup, PrayerStatus, Visibility
from app.models.user import User


class PrayerRequestView(BaseModel):
    id: str
    author_id: str
    author_username: str = ""
    author_display_name: str = ""
    title: str
    body: str
    category: PrayerCategory
    visibility: Visibility
    status: PrayerStatus
    allow_anonymous: bool
    prayed_count: int
    group_ids: List[str] = []
    group_names: List[str] = []
    prayer_type_counts: Dict[str, int] = {}
    my_prayer_types: List[str] = []
    created_at: datetime
    updated_at: datetime


def _zero_counts() -> Dict[str, int]:
    return {action_type.value: 0 for action_type in PrayerActionType}


def enrich(
    session: Session, requests: Sequence[PrayerRequest], viewer_id: Optional[str] = None
) -> List[PrayerRequestView]:
    """Attach author, groups, action counts and the viewer's action types, preserving order."""
    if not requests:
        return []

    request_ids = [r.id for r in requests]
    author_ids = list({r.author_id for r in requests})

    authors: Dict[str, User] = {
        user.id: user for user in session.exec(select(User).where(User.id.in_(author_ids))).all()
    }

    group_ids: Dict[str, List[str]] = defaultdict(list)
    group_names: Dict[str, List[str]] = defaultdict(list)
    links = session.exec(
        select(PrayerRequestGroup.prayer_request_id, Group.id, Group.name)
        .join(Group, Group.id == PrayerRequestGroup.group_id)
        .where(PrayerRequestGroup.prayer_request_id.in_(request_ids))
        .order_by(Group.name, Group.id)
    ).all()
    for request_id, group_id, group_name in links:
        group_ids[request_id].append(group_id)
        group_names[request_id].append(group_name)

    counts: Dict[str, Dict[str, int]] = {request_id: _zero_counts() for request_id in request_ids}
    rows = session.exec(
        select(PrayerAction.prayer_request_id, PrayerAction.action_type, func.count())
        .where(PrayerAction.prayer_request_id.in_(request_ids))
        .group_by(PrayerAction.prayer_request_id, PrayerAction.action_type)
    ).all()
    for request_id, action_type, count in rows:
        counts[request_id][PrayerActionType(action_type).value] = int(count)

    mine: Dict[str, List[str]] = defaultdict(list)
    if viewer_id:
        rows = session.exec(
            select(PrayerAction.prayer_request_id, PrayerAction.action_type)
            .where(PrayerAction.prayer_request_id.in_(request_ids), PrayerAction.user_id == viewer_id)
            .distinct()
            .order_by(PrayerAction.prayer_request_id, PrayerAction.action_type)
        ).all()
        for request_id, action_type in rows:
            mine[request_id].append(PrayerActionType(action_type).value)

    views = []
    for request in requests:
        author = authors.get(request.author_id)
        views.append(
            PrayerRequestView(
                id=request.id,
                author_id=request.author_id,
                author_username=author.username if author else "",
                author_display_name=author.display_name if author else "",
                title=request.title,
                body=request.body,
                category=request.category,
                visibility=request.visibility,
                status=request.status,
                allow_anonymous=request.allow_anonymous,
                prayed_count=request.prayed_count,
                group_ids=group_ids[request.id],
                group_names=group_names[request.id],
                prayer_type_counts=counts[request.id],
                my_prayer_types=mine[request.id],
                created_at=request.created_at,
                updated_at=request.updated_at,
            )
        )
    return views
