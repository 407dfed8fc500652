"""Domain error taxonomy shared by the service and the data access layer.

Each error maps to exactly one HTTP status. The client treats only
:class:`UnavailableError` as a reason to fall back to local storage.
"""

from fastapi import status


class WellnessError(Exception):
    """Base class for domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(WellnessError):
    """Malformed or out-of-range input. Never reaches storage."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.details = details


class NotFoundError(WellnessError):
    """The referenced record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Record not found"


class ConflictError(WellnessError):
    """A uniqueness constraint would be violated."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Record already exists"


class UnavailableError(WellnessError):
    """Storage or network failure: the operation could not be attempted."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service unavailable"
