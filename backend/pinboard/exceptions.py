"""
Pinboard Backend — Custom Exception Hierarchy
===============================================

What:  Application exceptions, one per failure class the API reports.
Why:   Services raise domain errors; the handlers registered in main.py map
       them to status codes and a single JSON error shape. Routes and
       services never build error responses themselves. (The 429 of the
       rate limiter is the exception: it is answered in middleware.)
How:   Each exception carries a client-safe message and a context dict.
       The context is logged, and returned as "details" only where noted.

Exception Hierarchy:
    PinboardError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── ImageServiceError        → 500 Internal Server Error (details returned)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable
    └── DatabaseError            → 500 Internal Server Error (details hidden)
"""

from typing import Any, Dict, Optional


class PinboardError(Exception):
    """
    Base exception for all Pinboard application errors.

    Attributes:
        message:  Client-facing description
        context:  Extra debug information
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PinboardError):
    """
    Client input failed a business rule that schema validation can't express
    (undecodable image, malformed option JSON, self-follow, file too large).
    """

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


class AuthenticationError(PinboardError):
    """
    No usable identity: missing session cookie, or login with bad credentials.

    The login path always uses the same message whether the identifier or the
    password was wrong, so the response does not reveal which accounts exist.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(PinboardError):
    """A session token was presented but could not be verified."""

    def __init__(
        self,
        message: str = "Invalid token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(PinboardError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for a missing row; services turn that None into
    this exception so the 404 comes from the global handler.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(PinboardError):
    """A unique attribute (username, email) is already taken."""

    def __init__(
        self,
        message: str = "Resource already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ImageServiceError(PinboardError):
    """
    The external image service rejected or failed the upload.

    HTTP:    500, with the service's own error text under "details.error".
             Pin creation surfaces the upstream failure reason to the
             client, so this is the one handler that returns context.
    """

    def __init__(
        self,
        message: str = "Image upload failed",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if error:
            ctx["error"] = error
        super().__init__(message=message, context=ctx)
        self.error = error


class CircuitBreakerOpenError(PinboardError):
    """
    Raised while the image-service circuit breaker is OPEN.

    Requests fail immediately instead of waiting on timeouts and retries
    against a service that is known to be down.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "Image service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(PinboardError):
    """
    A database operation failed unexpectedly.

    The client only ever sees the generic message; the context (operation,
    original exception type) is logged server-side.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
