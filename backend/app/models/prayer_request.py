import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel


class PrayerCategory(str, Enum):
    HEALTH = "HEALTH"
    FAMILY = "FAMILY"
    WORK = "WORK"
    GRIEF = "GRIEF"
    THANKSGIVING = "THANKSGIVING"
    OTHER = "OTHER"


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    GROUP_ONLY = "GROUP_ONLY"
    PRIVATE = "PRIVATE"


class PrayerStatus(str, Enum):
    # PENDING_REVIEW is only found on legacy rows; new writes never produce it
    PENDING_REVIEW = "PENDING_REVIEW"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"
    REMOVED = "REMOVED"


class PrayerRequest(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    author_id: str = Field(foreign_key="users.id", index=True)
    title: str = Field(max_length=120)
    body: str = Field(max_length=4000)
    category: PrayerCategory = Field(sa_column=Column(String, nullable=False))
    visibility: Visibility = Field(sa_column=Column(String, nullable=False, index=True))
    allow_anonymous: bool = Field(default=False)
    status: PrayerStatus = Field(default=PrayerStatus.ACTIVE, sa_column=Column(String, nullable=False, index=True))
    prayed_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    deleted_at: Optional[datetime] = Field(default=None)


class PrayerRequestGroup(SQLModel, table=True):
    """Attachment of a GROUP_ONLY (or PUBLIC) request to a group."""

    prayer_request_id: str = Field(foreign_key="prayerrequest.id", primary_key=True)
    group_id: str = Field(foreign_key="groups.id", primary_key=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
