"""Domain errors raised by the connection services.

Routers translate these into HTTP responses. Lookups that simply find
nothing (unknown code, expired invitation) return ``None`` instead of raising.
"""


class ConnectionFlowError(Exception):
    """Base class for errors a caller must act on."""


class AuthenticationRequiredError(ConnectionFlowError):
    """A mutating call arrived without a user identity."""

    def __init__(self, message: str = "Sign in to continue"):
        super().__init__(message)


class RequestNotFoundError(ConnectionFlowError):
    """No connection request with that id is addressed to the caller."""


class RequestStateConflictError(ConnectionFlowError):
    """The request already reached a different terminal status."""


class InvitationDeliveryError(ConnectionFlowError):
    """The invitation email could not be handed to the transport."""


class RateLimitExceededError(ConnectionFlowError):
    """Too many attempts for the same key inside the window."""

    def __init__(self, message: str, retry_after_seconds: int):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class InvalidPendingTokenError(ConnectionFlowError):
    """The pending-connection token is malformed, forged or expired."""


class ProfileNotPublicError(ConnectionFlowError):
    """The code's owner has turned off their public profile."""
