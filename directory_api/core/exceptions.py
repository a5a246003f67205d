"""
Application error taxonomy and the JSON error envelope

Services and routes raise these; the handlers installed by the app factory
turn them into ``{"success": false, "error": {...}, "timestamp": ...}``.
"""
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    """Base exception carrying an HTTP status and a machine-readable code"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Any] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class ValidationFailedError(AppError):
    """Malformed or missing input"""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    """Missing, malformed or expired credentials"""
    status_code = 401
    code = "INVALID_TOKEN"


class AuthorizationError(AppError):
    """Caller is neither the resource owner nor an admin"""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """Duplicate unique key (slug, one review per user, ...)"""
    status_code = 409
    code = "DUPLICATE_ENTRY"


class OperationFailedError(AppError):
    """A persistence write failed; nothing was reflected in memory"""
    status_code = 500
    code = "OPERATION_FAILED"


# PostgreSQL SQLSTATE -> (status, code, message)
_PG_INTEGRITY_CODES = {
    "23505": (409, "DUPLICATE_ENTRY", "A record with this value already exists"),
    "23503": (400, "INVALID_REFERENCE", "Referenced record does not exist"),
    "23502": (400, "MISSING_REQUIRED_FIELD", "Required field is missing"),
}

# SQLite has no SQLSTATE; match on the driver message instead
_SQLITE_INTEGRITY_MARKERS = {
    "UNIQUE constraint failed": "23505",
    "FOREIGN KEY constraint failed": "23503",
    "NOT NULL constraint failed": "23502",
}


def classify_integrity_error(exc: IntegrityError) -> AppError:
    """Translate a database constraint violation into an AppError"""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)

    if not sqlstate:
        text = str(orig or exc)
        for marker, state in _SQLITE_INTEGRITY_MARKERS.items():
            if marker in text:
                sqlstate = state
                break

    if sqlstate in _PG_INTEGRITY_CODES:
        status_code, code, message = _PG_INTEGRITY_CODES[sqlstate]
        return AppError(message, status_code=status_code, code=code)

    return AppError("Database constraint violated", status_code=400, code="CONSTRAINT_VIOLATION")


def error_body(
    code: str,
    message: str,
    details: Optional[Any] = None,
    exc: Optional[BaseException] = None,
    include_stack: bool = False
) -> Dict[str, Any]:
    """Build the error envelope; stack traces only when include_stack is set"""
    error: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    if include_stack and exc is not None:
        error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    return {
        "success": False,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
