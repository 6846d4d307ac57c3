"""DelegationService — issue, encode, transport, and verify delegations.

Verification is purely local. It runs four checks in order and stops at the
first failure:

1. issuer DID matches the expected issuer (``issuer mismatch``)
2. ability (and optional resource) matches (``capability mismatch``)
3. ``now < expiration`` (``expired``)
4. the Ed25519 signature verifies against the key embedded in the issuer's
   ``did:key`` (``signature invalid``)

There is no revocation list; tokens expire purely by timestamp.
"""
from __future__ import annotations

import base64
import binascii
import logging
import math
import time
from typing import Callable

from agent_context.content.store import ContentStore
from agent_context.delegation.token import Capability, Delegation, signing_payload
from agent_context.delegation.verification import DenialReason, VerificationResult
from agent_context.errors import ValidationError
from agent_context.identity.did_key import validate_did_key_format
from agent_context.identity.identity import Identity, verify_signature

logger = logging.getLogger(__name__)

DELEGATION_FILENAME = "delegation.json"
DELEGATION_MIME_TYPE = "application/json"

_BEARER_PREFIX = "Bearer "

Clock = Callable[[], float]


class DelegationService:
    """Stateless delegation issuer and verifier.

    Parameters
    ----------
    clock:
        Returns the current Unix time in seconds. Defaults to :func:`time.time`.

    Example
    -------
    ::

        service = DelegationService()
        token = service.issue(alice, bob, "agent/read", ttl_hours=24)
        wire = service.to_transport_string(token)

        received = service.from_transport_string(wire)
        result = service.verify(received, alice.did, "agent/read")
        assert result.valid
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or time.time

    def now(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue(
        self,
        issuer: Identity,
        audience: Identity | str,
        capability: str,
        ttl_hours: float,
        resource: str | None = None,
    ) -> Delegation:
        """Issue a delegation of *capability* from *issuer* to *audience*.

        Parameters
        ----------
        issuer:
            Identity whose private key signs the token.
        audience:
            Receiving identity, or just its ``did:key``.
        capability:
            Ability string, e.g. ``"agent/read"``.
        ttl_hours:
            Positive lifetime in hours; ``expiration = now + ttl_hours * 3600``.
        resource:
            Resource the ability applies to; defaults to the issuer's DID.

        Raises
        ------
        ValidationError
            If *ttl_hours* is not a positive number, *capability* is empty, or
            *audience* is not a valid ``did:key``.
        """
        if isinstance(ttl_hours, bool) or not isinstance(ttl_hours, (int, float)):
            raise ValidationError(f"ttl_hours must be a number, got {ttl_hours!r}")
        if ttl_hours != ttl_hours or ttl_hours <= 0:  # NaN compares unequal to itself
            raise ValidationError(f"ttl_hours must be positive, got {ttl_hours!r}", {"ttl_hours": ttl_hours})
        try:
            lifetime = float(ttl_hours) * 3600
            expires_at = self._clock() + lifetime
            if not math.isfinite(expires_at):
                raise OverflowError("expiration is not finite")
            expiration = math.floor(expires_at)
        except OverflowError as exc:
            raise ValidationError(
                f"ttl_hours is too large, got {ttl_hours!r}", {"ttl_hours": ttl_hours}
            ) from exc
        if lifetime < 1:
            raise ValidationError("ttl_hours must cover at least one second", {"ttl_hours": ttl_hours})
        if not isinstance(capability, str) or not capability:
            raise ValidationError("capability must be a non-empty string")

        audience_did = audience.did if isinstance(audience, Identity) else audience
        validate_did_key_format(audience_did)

        grant = Capability(ability=capability, resource=resource or issuer.did)
        signature = issuer.sign(signing_payload(issuer.did, audience_did, grant, expiration))
        delegation = Delegation(
            issuer_did=issuer.did,
            audience_did=audience_did,
            capability=grant,
            expiration=expiration,
            signature=signature,
        )
        logger.info(
            "Issued %r delegation %s from %s to %s, expires at %d",
            capability,
            delegation.content_address,
            delegation.issuer_did,
            delegation.audience_did,
            expiration,
        )
        return delegation

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def serialize(self, delegation: Delegation) -> bytes:
        """Canonical byte encoding of *delegation*."""
        return delegation.to_bytes()

    def deserialize(self, raw: bytes) -> Delegation:
        """Reconstruct a delegation from :meth:`serialize` output.

        Raises
        ------
        ValidationError
            If *raw* is not a well-formed delegation.
        """
        return Delegation.from_bytes(raw)

    def to_transport_string(self, delegation: Delegation) -> str:
        """Unpadded base64url of :meth:`serialize`, safe for headers and URLs."""
        return base64.urlsafe_b64encode(self.serialize(delegation)).decode("ascii").rstrip("=")

    def from_transport_string(self, token: str) -> Delegation:
        """Decode a transport string produced by :meth:`to_transport_string`.

        Surrounding whitespace and a leading ``Bearer`` prefix are tolerated.

        Raises
        ------
        ValidationError
            If *token* is not valid base64url or does not decode to a delegation.
        """
        if not isinstance(token, str):
            raise ValidationError("Delegation token must be a string")
        text = token.strip()
        if text.startswith(_BEARER_PREFIX):
            text = text[len(_BEARER_PREFIX) :].strip()
        if not text:
            raise ValidationError("Delegation token is empty")
        try:
            raw = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
        except (binascii.Error, ValueError) as exc:
            raise ValidationError(f"Delegation token is not base64url: {exc}") from exc
        return self.deserialize(raw)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        delegation: Delegation,
        expected_issuer_did: str,
        expected_capability: str,
        now: float | None = None,
        expected_resource: str | None = None,
    ) -> VerificationResult:
        """Check *delegation* locally; see the module docstring for the order.

        Parameters
        ----------
        delegation:
            Token to check.
        expected_issuer_did:
            DID that must have issued the token.
        expected_capability:
            Ability the token must grant.
        now:
            Unix time to check expiry against; defaults to the service clock.
        expected_resource:
            When given, the capability's resource must also match.
        """
        if delegation.issuer_did != expected_issuer_did:
            return VerificationResult.deny(DenialReason.ISSUER_MISMATCH)
        if delegation.capability.ability != expected_capability:
            return VerificationResult.deny(DenialReason.CAPABILITY_MISMATCH)
        if expected_resource is not None and delegation.capability.resource != expected_resource:
            return VerificationResult.deny(DenialReason.CAPABILITY_MISMATCH)
        current = self._clock() if now is None else now
        if not current < delegation.expiration:
            return VerificationResult.deny(DenialReason.EXPIRED)
        if not verify_signature(delegation.issuer_did, delegation.payload_bytes(), delegation.signature):
            return VerificationResult.deny(DenialReason.SIGNATURE_INVALID)
        return VerificationResult.accept()

    # ------------------------------------------------------------------
    # Transport via ContentStore
    # ------------------------------------------------------------------

    async def publish(self, delegation: Delegation, store: ContentStore) -> str:
        """Upload the serialized token to *store* and return its CID."""
        cid = await store.upload(self.serialize(delegation), DELEGATION_FILENAME, DELEGATION_MIME_TYPE)
        logger.info("Published delegation %s as %s", delegation.content_address, cid)
        return cid

    async def fetch(self, cid: str, store: ContentStore) -> Delegation | None:
        """Fetch and decode a token published with :meth:`publish`."""
        raw = await store.fetch(cid, DELEGATION_FILENAME)
        if raw is None:
            return None
        return self.deserialize(raw)


__all__ = ["DELEGATION_FILENAME", "DelegationService"]
