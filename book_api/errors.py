"""
Error taxonomy for the Book Directory API.

Every business-rule failure raised by the services is a subclass of
BookDirectoryError. The HTTP layer turns these into a status code and a
``{"message": ...}`` body; nothing else about the exception leaves the server.
"""

from fastapi import status


class BookDirectoryError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyExists(BookDirectoryError):
    """A record with the same natural key is already stored."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class NotFound(BookDirectoryError):
    """The requested record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidCredentials(BookDirectoryError):
    """The supplied password does not match the stored digest."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Login credentials are invalid"


class Unauthorized(BookDirectoryError):
    """No active session, or the session user may not act on the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied, please login again"
