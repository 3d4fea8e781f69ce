"""
Route Details Backend: Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for the route store and its transports.
How:   Each exception carries a message and an optional context dict.
       The route handlers turn them into response envelopes; FastAPI's global
       handlers (main.py) cover anything that escapes a route.
Who:   Raised by the route service, validation and the message transport.

Exception Hierarchy:
    RouteDetailsError (base)
    ├── ValidationError       → 400 Bad Request (client can fix the input)
    ├── ConflictError         → 409 Conflict (uniqueness violation)
    ├── StorageError          → 500 Internal Server Error
    └── MessageFramingError   → corrupt frame on the message transport

Note on "not found":
    A missing route is not an exception. The route service returns the
    NotFound sentinel from services.results and the handlers answer 404.
"""

from typing import Any, Dict, List, Optional


class RouteDetailsError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  Human-readable error description (safe to return to clients)
        context:  Additional debug info (logged, not returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RouteDetailsError):
    """
    Raised when input fails validation or the store rejects a record's shape.

    Attributes:
        errors: One message per offending field, e.g. "path: must not be empty"
    """

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        self.errors = list(errors or [])
        if self.errors:
            ctx["errors"] = self.errors
        super().__init__(message=message, context=ctx)


class ConflictError(RouteDetailsError):
    """
    Raised when a write violates a uniqueness constraint.

    When:  Two routes end up with the same routeId. The generator makes this
           practically unreachable, but the unique index is the final word.
    """

    def __init__(
        self,
        message: str = "A route with the same routeId already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageError(RouteDetailsError):
    """
    Raised when the underlying store is unreachable or rejects an operation.

    The message carries the driver's own description so callers can see
    what went wrong; the original exception is chained as __cause__.
    """

    def __init__(
        self,
        message: str = "A storage error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MessageFramingError(RouteDetailsError):
    """Raised when a message-transport frame cannot be decoded."""

    def __init__(
        self,
        message: str = "Corrupted message frame",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
