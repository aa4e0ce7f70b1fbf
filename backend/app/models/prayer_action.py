import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Index, String
from sqlmodel import Column, Field, SQLModel


class PrayerActionType(str, Enum):
    HAIL_MARY = "HAIL_MARY"
    OUR_FATHER = "OUR_FATHER"
    GLORY_BE = "GLORY_BE"
    ROSARY_DECADE = "ROSARY_DECADE"
    ROSARY_FULL = "ROSARY_FULL"


class PrayerAction(SQLModel, table=True):
    __table_args__ = (
        # Backs the rolling-window duplicate lookup
        Index("ix_prayeraction_user_request_type", "user_id", "prayer_request_id", "action_type", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id")
    prayer_request_id: str = Field(foreign_key="prayerrequest.id", index=True)
    action_type: PrayerActionType = Field(sa_column=Column(String, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
