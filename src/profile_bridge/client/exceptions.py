"""Custom exceptions for Profile Bridge.

This module defines exception classes for the error conditions that can occur
while talking to the platform API, reading a backup archive, or running a
sync phase.
"""


class ProfileBridgeError(Exception):
    """Base exception for all Profile Bridge errors."""

    pass


class APIError(ProfileBridgeError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when the account token is rejected (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when the token lacks permission (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    pass


class ConflictError(APIError):
    """Raised when the platform reports a conflict (409 Conflict)."""

    pass


class RateLimitError(APIError):
    """Raised when the platform throttles us (429 Too Many Requests).

    Never retried; surfaces as an ordinary item failure.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(ProfileBridgeError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class ConfigurationError(ProfileBridgeError):
    """Raised when configuration is invalid or missing."""

    pass


class ArchiveError(ProfileBridgeError):
    """Raised when a backup archive is missing or unreadable."""

    pass


class SyncError(ProfileBridgeError):
    """Base class for errors raised by the sync engine."""

    pass


class PhaseError(SyncError):
    """A whole entity-type phase failed and none of its items were processed."""

    def __init__(self, entity_type: str, message: str):
        self.entity_type = entity_type
        super().__init__(f"{entity_type}: {message}")


class DuplicateCorrelationKeyError(PhaseError):
    """Two entities on one side share a correlation key.

    Attributes:
        side: "source" or "target"
        key: The duplicated correlation key
        names: Names of the entities sharing the key
    """

    def __init__(self, entity_type: str, side: str, key: str, names: list[str]):
        self.side = side
        self.key = key
        self.names = names
        super().__init__(
            entity_type,
            f"duplicate correlation key {key!r} on {side} side ({', '.join(names)})",
        )


class DependencyUnavailableError(PhaseError):
    """A referenced entity type could not be collected, so this phase is blocked."""

    def __init__(self, entity_type: str, dependency: str):
        self.dependency = dependency
        super().__init__(entity_type, f"dependency unavailable: {dependency}")


class ItemSyncError(SyncError):
    """Failure scoped to a single item; siblings keep running."""

    pass


class ConsistencyError(ItemSyncError):
    """A correlated pair is missing data the phase requires (e.g. a device token)."""

    pass


class IdentityConflictError(ItemSyncError):
    """An identity mapping was written twice with different target values."""

    def __init__(self, entity_type: str, old_id: str, existing: str, new: str):
        self.entity_type = entity_type
        self.old_id = old_id
        self.existing = existing
        self.new = new
        super().__init__(
            f"{entity_type} {old_id!r} already maps to {existing!r}, refusing {new!r}"
        )
