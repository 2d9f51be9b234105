"""
Custom Exception Classes for the Tribeworks API.

Every lifecycle failure carries a ``kind`` tag alongside its HTTP status so
callers get a definitive, specific error whichever surface they use (HTTP
route, Celery task, or direct service call).
"""
from fastapi import HTTPException, status


class LifecycleError(HTTPException):
    """Base class for tagged lifecycle errors."""

    kind: str = "Unknown"
    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(status_code=self.default_status, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class NotFoundError(LifecycleError):
    """Exception raised when a requested resource is not found."""

    kind = "NotFound"
    default_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, id: str = None):
        detail = f"{resource} not found" + (f": {id}" if id else "")
        super().__init__(detail)


class AuthenticationError(LifecycleError):
    """Exception raised when no verified actor identity is present."""

    kind = "Unauthenticated"
    default_status = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)
        self.headers = {"WWW-Authenticate": "Bearer"}


class AuthorizationError(LifecycleError):
    """Exception raised when a user is not authorized to access a resource."""

    kind = "Forbidden"
    default_status = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message)


class InvalidStateError(LifecycleError):
    """Exception raised when an entity's status or visibility forbids the action."""

    kind = "InvalidState"
    default_status = status.HTTP_400_BAD_REQUEST


class UnsupportedSourceError(LifecycleError):
    """Exception raised for actions against externally-hosted grants."""

    kind = "UnsupportedSource"
    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "This grant uses external applications"):
        super().__init__(message)


class ConflictError(LifecycleError):
    """Exception raised when a resource conflict occurs (e.g., duplicate)."""

    kind = "Duplicate"
    default_status = status.HTTP_409_CONFLICT


class SelfDealingError(LifecycleError):
    """Exception raised when a funding organization's member tries to take part."""

    kind = "SelfDealing"
    default_status = status.HTTP_403_FORBIDDEN


class ValidationError(LifecycleError):
    """Exception raised when request validation fails."""

    kind = "ValidationFailed"
    default_status = status.HTTP_400_BAD_REQUEST


class UnknownError(LifecycleError):
    """Exception raised when a collaborator (store, network) fails unexpectedly."""

    kind = "Unknown"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Unexpected failure while processing the request"):
        super().__init__(message)
