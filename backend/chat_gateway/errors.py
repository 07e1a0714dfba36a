"""Error taxonomy shared by the gateway components.

Every error carries the HTTP status it maps to and the message that is safe
to show to the caller. ``UpstreamError`` keeps the internal detail for the
logs only.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for errors rendered as ``{"error": ...}`` responses."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(GatewayError):
    """Malformed, oversized or blocklisted input."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(GatewayError):
    """Missing, invalid or expired credential."""

    status_code = 401
    default_message = "Unauthorized"


class OwnershipError(GatewayError):
    """Session missing or owned by someone else.

    Both cases share one status and message so existence is never leaked.
    """

    status_code = 404
    default_message = "Session not found"

    @property
    def public_message(self) -> str:
        return self.default_message


class RateLimitError(GatewayError):
    """Admission denied for the caller key."""

    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, retry_after: float = 0.0, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(GatewayError):
    """Failure of an external collaborator (model, store, search, identity)."""

    status_code = 500
    default_message = "Internal server error"

    @property
    def public_message(self) -> str:
        return self.default_message


class DispatchError(GatewayError):
    """A lookup handler failed; converted to an inline fragment, never surfaced."""

    def __init__(self, directive: str, message: str | None = None) -> None:
        super().__init__(message or f"Lookup {directive} failed")
        self.directive = directive
