from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

USERNAME_PATTERN = r"^[a-z0-9_]{3,30}$"


class User(SQLModel, table=True):
    # "user" is reserved in Postgres
    __tablename__ = "users"

    id: str = Field(primary_key=True)  # token subject
    email: str
    username: str = Field(unique=True, index=True, max_length=30)
    display_name: str = Field(max_length=80)
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    deleted_at: Optional[datetime] = Field(default=None)
