"""
User provisioning and profile management.

Users are never registered explicitly: the first authenticated request for
a token subject creates the row from the token claims.
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.auth.jwks import AuthIdentity
from app.models.user import USERNAME_PATTERN, User
from app.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(USERNAME_PATTERN)
DISPLAY_NAME_MIN = 2
DISPLAY_NAME_MAX = 80
FALLBACK_DISPLAY_NAME = "Member"


def normalize_username(raw: Optional[str]) -> str:
    """Lowercase, trim and drop one leading '@'."""
    value = (raw or "").strip().lower()
    if value.startswith("@"):
        value = value[1:]
    return value.strip()


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_RE.match(username))


def _username_taken(session: Session, username: str, exclude_user_id: Optional[str] = None) -> bool:
    query = select(User.id).where(func.lower(User.username) == username.lower())
    if exclude_user_id:
        query = query.where(User.id != exclude_user_id)
    return session.exec(query).first() is not None


def _generated_username(session: Session, user_id: str) -> str:
    stem = re.sub(r"[^a-z0-9]", "", user_id.lower())[:8] or uuid.uuid4().hex[:8]
    base = f"user_{stem}"
    candidate = base
    for suffix in range(2, 100):
        if not _username_taken(session, candidate):
            return candidate
        candidate = f"{base}_{suffix}"
    return f"user_{uuid.uuid4().hex[:12]}"


def _initial_username(session: Session, identity: AuthIdentity) -> str:
    claimed = normalize_username(identity.username)
    if claimed and is_valid_username(claimed) and not _username_taken(session, claimed):
        return claimed
    return _generated_username(session, identity.user_id)


def _initial_display_name(identity: AuthIdentity, email: str) -> str:
    for candidate in (identity.display_name, email.split("@", 1)[0]):
        candidate = (candidate or "").strip()[:DISPLAY_NAME_MAX]
        if len(candidate) >= DISPLAY_NAME_MIN:
            return candidate
    return FALLBACK_DISPLAY_NAME


def _insert_user(session: Session, identity: AuthIdentity, email: str, username: str) -> User:
    user = User(
        id=identity.user_id,
        email=email,
        username=username,
        display_name=_initial_display_name(identity, email),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Provisioned user {user.id} as @{user.username}")
    return user


def ensure_user(session: Session, identity: AuthIdentity) -> User:
    """
    Return the user for a verified identity, creating it on first sight.

    An existing row only has its email refreshed when the token carries one.
    """
    email = identity.email or f"{identity.user_id}@auth.local"

    user = session.get(User, identity.user_id)
    if user is not None:
        if identity.email and user.email != identity.email:
            user.email = identity.email
            user.updated_at = datetime.utcnow()
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    try:
        return _insert_user(session, identity, email, _initial_username(session, identity))
    except IntegrityError:
        session.rollback()
        # Concurrent first request for the same subject won the insert
        existing = session.get(User, identity.user_id)
        if existing is not None:
            return existing

    # Another subject took the same username between the check and the insert
    logger.info(f"Username collision provisioning {identity.user_id}; retrying with a generated one")
    return _insert_user(session, identity, email, _generated_username(session, identity.user_id))


def get_profile(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None or user.deleted_at is not None:
        raise NotFoundError("user not found", code="USER_NOT_FOUND")
    return user


def update_profile(
    session: Session,
    user_id: str,
    display_name: Optional[str] = None,
    username: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> User:
    """
    Update display name, username and avatar.

    A blank display name or username keeps the current value. The avatar
    is replaced as given; blank clears it.
    """
    user = get_profile(session, user_id)

    display_name = (display_name or "").strip() or user.display_name
    if not DISPLAY_NAME_MIN <= len(display_name) <= DISPLAY_NAME_MAX:
        raise ValidationError("invalid displayName")

    username = normalize_username(username) or user.username
    if not is_valid_username(username):
        raise ValidationError("invalid username")
    if username != user.username and _username_taken(session, username, exclude_user_id=user_id):
        raise ConflictError("username already in use", code="USERNAME_TAKEN")

    user.display_name = display_name
    user.username = username
    user.avatar_url = (avatar_url or "").strip() or None
    user.updated_at = datetime.utcnow()

    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("username already in use", code="USERNAME_TAKEN")
    session.refresh(user)
    return user


def is_username_available(session: Session, username: str, user_id: Optional[str] = None) -> bool:
    """True when the normalized username is well-formed and not held by another user."""
    normalized = normalize_username(username)
    if not is_valid_username(normalized):
        raise ValidationError("invalid username")
    return not _username_taken(session, normalized, exclude_user_id=user_id)
