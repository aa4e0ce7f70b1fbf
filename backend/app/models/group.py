import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class GroupJoinPolicy(str, Enum):
    OPEN = "OPEN"
    REQUEST = "REQUEST"
    INVITE_ONLY = "INVITE_ONLY"


class GroupRole(str, Enum):
    MEMBER = "MEMBER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class JoinRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class Group(SQLModel, table=True):
    # "group" is reserved in SQL
    __tablename__ = "groups"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=80, index=True)
    description: str = Field(default="", max_length=500)
    image_url: Optional[str] = None
    join_policy: GroupJoinPolicy = Field(default=GroupJoinPolicy.REQUEST, sa_column=Column(String, nullable=False))
    created_by: str = Field(foreign_key="users.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})


class GroupMembership(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("group_id", "user_id", name="uq_group_membership"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    group_id: str = Field(foreign_key="groups.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    role: GroupRole = Field(default=GroupRole.MEMBER, sa_column=Column(String, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    deleted_at: Optional[datetime] = Field(default=None)  # soft leave; rejoin clears it


class GroupJoinRequest(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("group_id", "user_id", name="uq_group_join_request"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    group_id: str = Field(foreign_key="groups.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    status: JoinRequestStatus = Field(default=JoinRequestStatus.PENDING, sa_column=Column(String, nullable=False))
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    reviewed_at: Optional[datetime] = Field(default=None)
    reviewed_by: Optional[str] = Field(default=None, foreign_key="users.id")
