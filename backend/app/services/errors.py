"""
Domain errors raised by the service layer.

Each error carries a stable machine-readable code and the HTTP status the
API layer answers with. Services never return partial results on error.
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for service-layer failures"""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(ServiceError):
    """Malformed input; the caller may resubmit corrected data"""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class NotFoundError(ServiceError):
    """Entity is absent or not visible to the caller"""

    status_code = 404
    default_code = "NOT_FOUND"


class ForbiddenError(ServiceError):
    """Caller is authenticated but lacks the privilege"""

    status_code = 403
    default_code = "FORBIDDEN"


class ConflictError(ServiceError):
    status_code = 409
    default_code = "CONFLICT"


class RateLimitedError(ServiceError):
    """Duplicate action inside its rate-limit window; retry later"""

    status_code = 429
    default_code = "RATE_LIMITED"


class InviteOnlyGroupError(ForbiddenError):
    default_code = "GROUP_INVITE_ONLY"

    def __init__(self, message: str = "invite only group"):
        super().__init__(message)
