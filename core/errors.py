"""
core/errors.py -- Error taxonomy shared by the auth, portfolio and api layers.

Services raise these; api/main.py turns every ApiError into the same JSON
envelope:

    {"success": false, "error": <code>, "message": <text>, "details": ...}

status_code and code are class-level defaults so callers usually only pass a
message. Subclasses exist so tests and callers can catch a specific cause
(e.g. PayloadTooLarge vs. UnsupportedMediaType) rather than a generic failure.

Layer rule: no imports from api/, auth/, or portfolio/.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class ApiError(Exception):
    """Base class for every error that maps to an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Any = None,
        extra: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        # Additional top-level keys merged into the error envelope.
        self.extra = extra or {}


class BadRequest(ApiError):
    status_code = 400
    code = "bad_request"


class ValidationError(ApiError):
    """Malformed or missing input. details lists every field-level violation."""

    status_code = 422
    code = "validation_error"


class Unauthorized(ApiError):
    status_code = 401
    code = "unauthorized"


class TokenExpired(Unauthorized):
    code = "token_expired"

    def __init__(self, message: str = "Token expired.", *, expired_at: Optional[datetime] = None) -> None:
        extra = {"expiredAt": expired_at.isoformat()} if expired_at else None
        super().__init__(message, extra=extra)
        self.expired_at = expired_at


class TokenInvalid(Unauthorized):
    code = "token_invalid"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"


class NotFound(ApiError):
    status_code = 404
    code = "not_found"


class Conflict(ApiError):
    status_code = 409
    code = "conflict"


class PayloadTooLarge(ApiError):
    status_code = 413
    code = "file_too_large"


class UnsupportedMediaType(ApiError):
    status_code = 415
    code = "unsupported_type"


class RateLimited(ApiError):
    status_code = 429
    code = "too_many_attempts"

    def __init__(self, message: str, *, retry_after: datetime) -> None:
        super().__init__(message, extra={"retryAfter": retry_after.isoformat()})
        self.retry_after = retry_after


class UpstreamFailure(ApiError):
    """Persistence or mail-transport failure."""

    status_code = 502
    code = "upstream_failure"
