"""Exception hierarchy for LeadHub."""


class LeadHubError(Exception):
    """Base exception for all LeadHub errors."""


class AccessError(LeadHubError):
    """A recoverable, user-facing authorization or validation failure."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(AccessError):
    """Raised when no identity or user could be resolved for the request."""

    status_code = 401


class Forbidden(AccessError):
    """Raised when the actor lacks the role, ownership or membership status required."""

    status_code = 403


class NotFound(AccessError):
    """Raised when the addressed record does not exist in the actor's tenant."""

    status_code = 404


class Conflict(AccessError):
    """Raised on duplicate memberships or invitations."""

    status_code = 409


class BadRequest(AccessError):
    """Raised when an operation would violate a membership invariant."""

    status_code = 400


class IdentityProviderError(LeadHubError):
    """Raised when the external identity provider call fails."""


class StorageError(LeadHubError):
    """Raised when storage operations fail."""


class ConfigError(LeadHubError):
    """Raised when configuration is invalid."""
