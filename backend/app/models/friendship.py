import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel


class FriendshipStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


def friendship_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for a pair of users."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


class Friendship(SQLModel, table=True):
    """
    One row per pair of users.

    requester_id sent the request and addressee_id may accept it; once
    ACCEPTED the relationship is symmetric. pair_key is unique so opposite
    requests racing each other cannot both be stored.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    requester_id: str = Field(foreign_key="users.id", index=True)
    addressee_id: str = Field(foreign_key="users.id", index=True)
    pair_key: str = Field(unique=True)
    status: FriendshipStatus = Field(default=FriendshipStatus.PENDING, sa_column=Column(String, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
