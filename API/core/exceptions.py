"""
Application error taxonomy.

Services raise these; app.py renders them as
{"success": false, "message": ..., **payload} with the matching status code.
"""

from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, payload: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.payload = payload or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, **self.payload}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(AppError):
    """Bad credentials. The message never says which part was wrong."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid email or password"


class ExpiredError(AppError):
    """Wrong or expired OTP. Both cases share one message."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired OTP"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


class ApprovalPendingError(AuthorizationError):
    default_message = "New device detected. Waiting for approval"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidTransitionError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Login attempt is no longer in the expected state"


class RateLimitedError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many attempts. Please wait and try again"


class TransientInfraError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Service temporarily unavailable"
