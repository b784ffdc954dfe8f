"""
Service error taxonomy.

Every failure a service can report is a ServiceError carrying the HTTP
status code and a short machine-readable error kind. Route handlers let
these propagate; app.main translates them into the response envelope
{message, error}.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    status_code: int = 500
    error: str = "Internal"

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error


class InvalidInputError(ServiceError):
    status_code = 400
    error = "ValidationError"


class UnauthorizedError(ServiceError):
    status_code = 401
    error = "Unauthorized"


class ForbiddenError(ServiceError):
    status_code = 403
    error = "Forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    error = "NotFound"


class ConflictError(ServiceError):
    status_code = 409
    error = "Conflict"


# Lifecycle-specific kinds

class MissingContactInfo(InvalidInputError):
    error = "MissingContactInfo"


class MissingResolutionNotes(InvalidInputError):
    error = "MissingResolutionNotes"


class InvalidTransition(ConflictError):
    error = "InvalidTransition"


class NotCancellable(ConflictError):
    error = "NotCancellable"


class AlreadyRated(ConflictError):
    error = "AlreadyRated"


class NotEligibleForFeedback(ConflictError):
    error = "NotEligibleForFeedback"


class ConcurrentModification(ConflictError):
    error = "ConcurrentModification"
