"""
Domain-specific exceptions for the dashboard sync layer and reference API.

Client-side errors describe why a load or save did not go through; the
server-side ones are mapped to HTTP status codes in the API layer.
"""

from typing import Any


class DashSyncError(Exception):
    """Base exception for all dashsync errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DashSyncError):
    """
    Raised when a request body does not have the expected shape.

    Examples:
    - POST body is not a JSON object
    - A collection field is not a list

    HTTP Status: 400 Bad Request
    """

    pass


class AuthenticationRequiredError(DashSyncError):
    """
    Raised when the API answers 401.

    On the client this follows the login redirect hook; it is never retried.

    HTTP Status: 401 Unauthorized
    """

    pass


class SaveBlockedError(DashSyncError):
    """
    Raised server-side when a save would replace stored data with empty state.

    The response body carries `blocked: true`, which the client treats as an
    intentional rejection rather than a failure.

    HTTP Status: 400 Bad Request
    """

    pass


class ApiResponseError(DashSyncError):
    """
    Raised by the HTTP transport for any non-2xx response other than 401.

    Attributes:
        status_code: HTTP status of the response
        body: Decoded JSON body, or an empty dict when the body was not JSON
    """

    def __init__(self, message: str, status_code: int, body: dict[str, Any] | None = None):
        self.status_code = status_code
        self.body = body or {}
        super().__init__(message, details={"status_code": status_code})

    @property
    def blocked(self) -> bool:
        """True when the server rejected the request on purpose."""
        return bool(self.body.get("blocked"))


class LoadError(DashSyncError):
    """
    Raised by a store when loading from the server fails.

    The store has already left its loading state when this propagates.
    """

    pass


class StoreRegistryError(DashSyncError):
    """
    Raised when a second, different store is registered for an endpoint.

    Each server resource has exactly one writer store.
    """

    pass


# HTTP Status Code Mapping
ERROR_STATUS_MAP = {
    ValidationError: 400,
    SaveBlockedError: 400,
    AuthenticationRequiredError: 401,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)
