"""
Custom exception hierarchy for the Dev Tracker backend.

Every error a handler can surface maps onto one of four HTTP outcomes
(400, 401, 404, 500). Routes and repositories raise these; main.py turns
them into ``{"error": "<message>"}`` responses.

Exception Hierarchy:
    DevTrackerError (base)
    ├── ValidationError
    ├── AuthError
    ├── NotFoundError
    └── InternalError
        └── EmailServiceError

Usage:
    from exceptions import ValidationError, NotFoundError

    raise ValidationError("Task name is required")
    raise NotFoundError("Project not found", detail={"project_id": 12})
"""

from typing import Optional, Dict, Any


class DevTrackerError(Exception):
    """
    Base exception for all Dev Tracker application errors.

    Attributes:
        message: Human-readable error message (returned to the client as ``error``)
        detail: Optional dict with additional error context
        status_code: HTTP status code for the response
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the JSON error body."""
        result: Dict[str, Any] = {"error": self.message}
        if self.detail:
            result["detail"] = self.detail
        return result


class ValidationError(DevTrackerError):
    """
    Raised when input validation fails.

    Examples:
        raise ValidationError("Task name is required")
        raise ValidationError("Password must be at least 8 characters long")
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=400)


class AuthError(DevTrackerError):
    """
    Raised when the caller has no valid session.

    Examples:
        raise AuthError("Not authenticated")
        raise AuthError("Invalid email or password")
    """

    def __init__(self, message: str = "Not authenticated", *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=401)


class NotFoundError(DevTrackerError):
    """
    Raised when an entity is absent, or present but not visible to the caller.

    Inaccessible entities are reported exactly like missing ones.
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=404)


class InternalError(DevTrackerError):
    """
    Raised when storage or another backend dependency fails.

    Examples:
        raise InternalError("Failed to create task")
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=500)


class EmailServiceError(InternalError):
    """
    Raised when an email the caller depends on could not be delivered.

    Only invitations raise this; every other email is best-effort.
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        if detail is None:
            detail = {"service": "email"}
        super().__init__(message, detail=detail)
