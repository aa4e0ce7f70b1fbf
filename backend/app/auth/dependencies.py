"""
FastAPI dependencies for bearer authentication.

The TokenValidator lives on app.state (created at import time in
app.main) and is injected per request, so tests can override
get_token_validator or get_current_identity directly.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.auth.jwks import AuthIdentity, TokenValidationError, TokenValidator
from app.database import get_session
from app.models.user import User
from app.services.profile_service import ensure_user

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication is required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_validator(request: Request) -> TokenValidator:
    return request.app.state.token_validator


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    validator: TokenValidator = Depends(get_token_validator),
) -> AuthIdentity:
    """Verified identity for protected routes; 401 otherwise."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized()
    try:
        return validator.validate(credentials.credentials)
    except TokenValidationError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise _unauthorized()


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    validator: TokenValidator = Depends(get_token_validator),
) -> Optional[AuthIdentity]:
    """Identity when a valid token is present, else None (never 401)."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return validator.validate(credentials.credentials)
    except TokenValidationError as e:
        logger.info(f"Ignoring invalid bearer token on public route: {e}")
        return None


def get_current_user(
    identity: AuthIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
) -> User:
    """Authenticated user, provisioned from the token on first request."""
    return ensure_user(session, identity)
