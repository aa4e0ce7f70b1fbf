"""
Prayer Request API Routes
Create, read, edit and archive prayer requests, and record prayer actions.
"""

from typing import List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlmodel import Session

from app.auth.dependencies import get_current_user
from app.database import get_session
from app.models.user import User
from app.services import prayer_service
from app.services.enrichment import PrayerRequestView, enrich

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class PrayerRequestWrite(BaseModel):
    # Enum fields stay plain strings so bad values surface as VALIDATION_ERROR
    title: str
    body: str
    category: str
    visibility: str
    allow_anonymous: bool = False
    group_ids: List[str] = []


class PrayRequest(BaseModel):
    action_type: str


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/requests", response_model=PrayerRequestView, status_code=201)
def create_prayer_request(
    payload: PrayerRequestWrite,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    request = prayer_service.create_prayer_request(
        session,
        author_id=user.id,
        title=payload.title,
        body=payload.body,
        category=payload.category,
        visibility=payload.visibility,
        allow_anonymous=payload.allow_anonymous,
        group_ids=payload.group_ids,
    )
    return enrich(session, [request], user.id)[0]


@router.get("/requests/{request_id}", response_model=PrayerRequestView)
def get_prayer_request(
    request_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """404 both when the request does not exist and when the caller may not see it."""
    request = prayer_service.get_prayer_request(session, request_id, user.id)
    return enrich(session, [request], user.id)[0]


@router.patch("/requests/{request_id}", response_model=PrayerRequestView)
def update_prayer_request(
    request_id: str,
    payload: PrayerRequestWrite,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    request = prayer_service.update_prayer_request(
        session,
        request_id,
        author_id=user.id,
        title=payload.title,
        body=payload.body,
        category=payload.category,
        visibility=payload.visibility,
        allow_anonymous=payload.allow_anonymous,
        group_ids=payload.group_ids,
    )
    return enrich(session, [request], user.id)[0]


@router.delete("/requests/{request_id}", status_code=204)
def delete_prayer_request(
    request_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    prayer_service.delete_prayer_request(session, request_id, user.id)
    return Response(status_code=204)


@router.post("/requests/{request_id}/pray", response_model=PrayerRequestView)
def pray(
    request_id: str,
    payload: PrayRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Record a prayer action; 429 when the same action is repeated inside the window."""
    request = prayer_service.record_prayer_action(session, request_id, user.id, payload.action_type)
    return enrich(session, [request], user.id)[0]
