"""VerificationResult — structured outcome of delegation verification.

Denials are ordinary return values, never exceptions: a denied delegation is
an expected outcome, and a gateway maps :attr:`VerificationResult.reason`
straight to a 401/403 response.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DenialReason(str, Enum):
    """Machine-readable reasons a delegation was rejected."""

    ISSUER_MISMATCH = "issuer mismatch"
    CAPABILITY_MISMATCH = "capability mismatch"
    EXPIRED = "expired"
    SIGNATURE_INVALID = "signature invalid"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of :meth:`~agent_context.delegation.service.DelegationService.verify`.

    Parameters
    ----------
    valid:
        ``True`` only when every check passed.
    reason:
        The first failed check, or ``None`` when valid.
    """

    valid: bool
    reason: DenialReason | None = None

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(valid=True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "VerificationResult":
        return cls(valid=False, reason=reason)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"valid": self.valid}
        if self.reason is not None:
            data["reason"] = self.reason.value
        return data


__all__ = ["DenialReason", "VerificationResult"]
