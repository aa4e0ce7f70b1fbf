import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}

if _is_sqlite and DATABASE_URL.startswith("sqlite:///") and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=settings.sql_echo,
    connect_args=_connect_args,
    pool_pre_ping=not _is_sqlite,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    Run a compound write as one transaction.

    Commits when the block exits normally; rolls back and re-raises on any
    exception, including service errors raised half-way through.
    """
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(f"Unit of work rolled back: {type(e).__name__}: {e}")
        raise


def init_db(bind: Engine = None) -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from app.models.friendship import Friendship  # noqa: F401
    from app.models.group import Group, GroupJoinRequest, GroupMembership  # noqa: F401
    from app.models.prayer_action import PrayerAction  # noqa: F401
    from app.models.prayer_request import PrayerRequest, PrayerRequestGroup  # noqa: F401
    from app.models.user import User  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
