"""
Group API Routes
Groups the caller belongs to, group search, creation and join requests.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from app.auth.dependencies import get_current_user
from app.database import get_session
from app.models.user import User
from app.services import group_service
from app.services.group_service import GroupSummary

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class GroupCreateRequest(BaseModel):
    name: str
    description: str = ""
    image_url: Optional[str] = None
    join_policy: Optional[str] = None


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    image_url: Optional[str] = None
    join_policy: str
    created_by: str
    created_at: datetime
    role: Optional[str] = None
    is_member: bool = False
    has_pending_request: bool = False


class GroupListResponse(BaseModel):
    items: List[GroupResponse]


class JoinRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    user_id: str
    username: str
    display_name: str
    status: str
    requested_at: datetime


class JoinRequestListResponse(BaseModel):
    items: List[JoinRequestResponse]


class StatusResponse(BaseModel):
    status: str


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/groups", response_model=GroupListResponse)
def list_my_groups(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return {"items": group_service.list_user_groups(session, user.id)}


@router.get("/groups/search", response_model=GroupListResponse)
def search_groups(
    q: str = Query(""),
    limit: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"items": group_service.search_groups(session, user.id, q, limit)}


@router.post("/groups", response_model=GroupResponse, status_code=201)
def create_group(
    payload: GroupCreateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    group = group_service.create_group(
        session,
        user.id,
        name=payload.name,
        description=payload.description,
        image_url=payload.image_url,
        join_policy=payload.join_policy,
    )
    return GroupSummary.from_group(group, role="ADMIN", is_member=True)


@router.post("/groups/{group_id}/join-requests", response_model=StatusResponse)
def request_join(group_id: str, user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    """JOINED for OPEN groups, REQUESTED for REQUEST groups, 403 GROUP_INVITE_ONLY otherwise."""
    outcome = group_service.request_join_group(session, group_id, user.id)
    return StatusResponse(status=outcome.value)


@router.get("/groups/{group_id}/join-requests", response_model=JoinRequestListResponse)
def list_join_requests(group_id: str, user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return {"items": group_service.list_join_requests(session, group_id, user.id)}


@router.post("/groups/{group_id}/join-requests/{request_id}/approve", response_model=StatusResponse)
def approve_join_request(
    group_id: str,
    request_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    group_service.approve_join_request(session, group_id, request_id, user.id)
    return StatusResponse(status="APPROVED")
