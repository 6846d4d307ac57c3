"""Error taxonomy for agent-context.

Every error raised by the library is an :class:`AgentContextError` carrying an
explicit :class:`ErrorKind` discriminant plus a ``details`` payload, so callers
can branch on ``exc.kind`` without inspecting message text.

Kinds
-----
VALIDATION
    Malformed local input (bad CID, non-positive TTL, unparseable token).
    Never retried.
NETWORK
    A content or name backend failed after the bounded retry budget was spent.
    Carries ``attempts`` and ``last_error``.
AUTH_DENIED
    Reserved for callers that want to turn a denied
    :class:`~agent_context.delegation.verification.VerificationResult` into an
    exception. The library itself returns denials as values.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminant for :class:`AgentContextError`."""

    VALIDATION = "validation"
    NETWORK = "network"
    AUTH_DENIED = "auth_denied"


class AgentContextError(Exception):
    """Base error with a kind discriminant and structured details."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details: dict[str, object] = details or {}

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary suitable for a JSON error body."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AgentContextError):
    """Raised for malformed input. Always local and never retried."""

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(ErrorKind.VALIDATION, message, details)


class NetworkError(AgentContextError):
    """Raised when a backend call still fails after all retry attempts.

    Parameters
    ----------
    message:
        Human-readable summary of the operation that failed.
    attempts:
        Number of attempts made before giving up.
    last_error:
        Message of the last underlying failure.
    """

    def __init__(self, message: str, attempts: int, last_error: str) -> None:
        super().__init__(
            ErrorKind.NETWORK,
            f"{message} after {attempts} attempt(s): {last_error}",
            {"attempts": attempts, "last_error": last_error},
        )
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "AgentContextError",
    "ErrorKind",
    "NetworkError",
    "ValidationError",
]
