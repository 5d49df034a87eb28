"""
Application exception hierarchy.

Services raise these instead of returning ``None`` or building HTTP
responses; the handlers registered in ``blogpress.main`` turn each one
into a JSON body of the form::

    {"error": "<code>", "message": "<text>", "details": {...}}

Hierarchy::

    BlogpressError (base)
    ├── ValidationError     → 400
    ├── UnauthorizedError   → 401
    ├── ForbiddenError      → 403
    ├── NotFoundError       → 404
    └── ConflictError       → 409

Anything else escaping a request is logged and reported as a generic 500.
"""
from typing import Any, Dict, Optional


class BlogpressError(Exception):
    """Base class; ``message`` is safe to return to API consumers."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BlogpressError):
    """Input is well-formed JSON but breaks a business rule."""

    status_code = 400
    code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message=message, details=details)
        self.field = field


class UnauthorizedError(BlogpressError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message)


class ForbiddenError(BlogpressError):
    """The caller is known but not allowed to perform the action."""

    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message)


class NotFoundError(BlogpressError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str = "Resource", resource_id: Optional[Any] = None):
        message = f"{resource} not found"
        details: Dict[str, Any] = {"resource": resource.lower()}
        if resource_id is not None:
            details["id"] = resource_id
        super().__init__(message=message, details=details)


class ConflictError(BlogpressError):
    """A unique field (email, username, like pair) is already taken."""

    status_code = 409
    code = "conflict"

    def __init__(self, message: str = "Resource already exists", field: Optional[str] = None):
        super().__init__(message=message, details={"field": field} if field else None)
        self.field = field
