"""
NoteKeeper Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions, each tagged with an `ErrorKind`.
How:   Every exception carries a client-safe message, an optional context
       dict (logged, never returned verbatim), and a `kind` discriminant.
       Global handlers in main.py map `kind` to an HTTP status code.
Who:   Raised by storage backends and services; caught by global handlers.

Exception Hierarchy:
    NoteKeeperError (base)
    ├── ValidationError              → 400 Bad Request
    ├── LastAdminProtectedError      → 400 Bad Request
    ├── AuthenticationError          → 401 Unauthorized
    ├── AccessDeniedError            → 403 Forbidden
    ├── NotFoundError                → 404 Not Found
    │   └── NotFoundOrAccessDeniedError
    └── StorageError                 → 500 Internal Server Error
        └── StorageUnavailableError  → 503 Service Unavailable

Callers branch on the exception type (or `exc.kind`), never on message text.
"""

import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    """Discriminant carried by every NoteKeeperError."""

    VALIDATION = "validation"
    LAST_ADMIN_PROTECTED = "last_admin_protected"
    AUTHENTICATION = "authentication"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    STORAGE = "storage"
    STORAGE_UNAVAILABLE = "storage_unavailable"


class NoteKeeperError(Exception):
    """
    Base exception for all NoteKeeper application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
        kind:     ErrorKind discriminant
    """

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteKeeperError):
    """
    Raised when client input fails a business rule.

    When:    Bad color format, empty/over-long category name, weak password,
             duplicate email, category reference owned by someone else.
    HTTP:    400 Bad Request
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class LastAdminProtectedError(NoteKeeperError):
    """
    Raised when an admin edit would leave the system without an active admin.

    This is a business-rule refusal, not a storage failure.
    HTTP:    400 Bad Request
    """

    kind = ErrorKind.LAST_ADMIN_PROTECTED

    def __init__(
        self,
        message: str = "At least one active admin must exist",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthenticationError(NoteKeeperError):
    """
    Raised when credentials or a bearer token are missing or invalid.

    HTTP:    401 Unauthorized
    """

    kind = ErrorKind.AUTHENTICATION

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AccessDeniedError(NoteKeeperError):
    """
    Raised when a record exists but belongs to a different user, or when a
    non-admin calls an admin operation.

    HTTP:    403 Forbidden
    """

    kind = ErrorKind.ACCESS_DENIED

    def __init__(
        self,
        message: str = "Access denied",
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if resource:
            ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class NotFoundError(NoteKeeperError):
    """
    Raised when a requested resource does not exist.

    Storage returns None for missing records; services convert that None into
    this exception so routes never check for it.
    HTTP:    404 Not Found
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class NotFoundOrAccessDeniedError(NotFoundError):
    """
    Owner-scoped lookup failed: the record is absent OR belongs to someone
    else. The response is identical to NotFoundError so a caller cannot probe
    for other users' records.
    """


class StorageError(NoteKeeperError):
    """
    Raised when a backend read or write fails.

    Security Note:
        The message returned to the client is always generic. Paths, SQL,
        and driver messages go into `context` and the server log only.
    HTTP:    500 Internal Server Error
    """

    kind = ErrorKind.STORAGE

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageUnavailableError(StorageError):
    """
    Raised when the backend cannot be reached at all (connection refused,
    database down). The core never retries; the caller decides.
    HTTP:    503 Service Unavailable
    """

    kind = ErrorKind.STORAGE_UNAVAILABLE

    def __init__(
        self,
        message: str = "The storage backend is temporarily unavailable.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
