"""Delegation — an Ed25519-signed capability grant from one DID to another.

Tokens are immutable once issued. The signed payload is a deterministic JSON
serialization of the grant::

    {"aud": <audience did>, "can": <ability>, "exp": <unix seconds>,
     "iss": <issuer did>, "with": <resource>}

The serialized token adds the base64url signature under ``"sig"`` and a
format version under ``"v"``; both forms use sorted keys and compact
separators, so encoding is independent of field order and reproducible byte
for byte. Verification needs only the token bytes and the issuer's public
key, which is recovered from the issuer's ``did:key``.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass

from agent_context.content.cid import compute_cid
from agent_context.errors import ValidationError

TOKEN_VERSION: int = 1


def _canonical(obj: dict[str, object]) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


@dataclass(frozen=True)
class Capability:
    """An ability over a resource, e.g. ``agent/read`` over the issuer's DID.

    Parameters
    ----------
    ability:
        Opaque ability string.
    resource:
        The resource the ability applies to; by convention the issuer's DID.
    """

    ability: str
    resource: str

    def to_dict(self) -> dict[str, str]:
        return {"can": self.ability, "with": self.resource}


@dataclass(frozen=True)
class Delegation:
    """A signed delegation of one capability from issuer to audience.

    Parameters
    ----------
    issuer_did:
        ``did:key`` of the granting agent.
    audience_did:
        ``did:key`` of the receiving agent.
    capability:
        The granted :class:`Capability`.
    expiration:
        Unix timestamp (seconds) from which the token is no longer valid.
    signature:
        64-byte Ed25519 signature by the issuer over :meth:`payload_bytes`.
    """

    issuer_did: str
    audience_did: str
    capability: Capability
    expiration: int
    signature: bytes

    # ------------------------------------------------------------------
    # Canonical encodings
    # ------------------------------------------------------------------

    def payload_bytes(self) -> bytes:
        """The exact bytes covered by :attr:`signature`."""
        return signing_payload(self.issuer_did, self.audience_did, self.capability, self.expiration)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary, signature base64url-encoded."""
        return {
            "v": TOKEN_VERSION,
            "iss": self.issuer_did,
            "aud": self.audience_did,
            "can": self.capability.ability,
            "with": self.capability.resource,
            "exp": self.expiration,
            "sig": _b64url_encode(self.signature),
        }

    def to_bytes(self) -> bytes:
        """Canonical byte encoding; round-trips through :meth:`from_bytes`."""
        return _canonical(self.to_dict())

    @property
    def content_address(self) -> str:
        """CID of :meth:`to_bytes`; doubles as the token identifier."""
        return compute_cid(self.to_bytes())

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Delegation":
        """Reconstruct a Delegation from :meth:`to_dict` output.

        Raises
        ------
        ValidationError
            If a field is missing, has the wrong type, or the version is
            unsupported.
        """
        version = data.get("v")
        if version != TOKEN_VERSION:
            raise ValidationError(f"Unsupported delegation version {version!r}")
        fields: dict[str, str] = {}
        for key in ("iss", "aud", "can", "with", "sig"):
            value = data.get(key)
            if not isinstance(value, str) or not value:
                raise ValidationError(f"Delegation field {key!r} must be a non-empty string")
            fields[key] = value
        expiration = data.get("exp")
        if isinstance(expiration, bool) or not isinstance(expiration, int):
            raise ValidationError("Delegation field 'exp' must be an integer")
        try:
            signature = _b64url_decode(fields["sig"])
        except (binascii.Error, ValueError) as exc:
            raise ValidationError(f"Delegation signature is not base64url: {exc}") from exc
        return cls(
            issuer_did=fields["iss"],
            audience_did=fields["aud"],
            capability=Capability(ability=fields["can"], resource=fields["with"]),
            expiration=expiration,
            signature=signature,
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Delegation":
        """Reconstruct a Delegation from :meth:`to_bytes` output."""
        try:
            data = json.loads(bytes(raw).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as exc:
            raise ValidationError(f"Delegation bytes are not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValidationError("Delegation must be a JSON object")
        return cls.from_dict(data)


def signing_payload(
    issuer_did: str,
    audience_did: str,
    capability: Capability,
    expiration: int,
) -> bytes:
    """Canonical bytes signed by the issuer."""
    return _canonical(
        {
            "iss": issuer_did,
            "aud": audience_did,
            "can": capability.ability,
            "with": capability.resource,
            "exp": expiration,
        }
    )


__all__ = ["Capability", "Delegation", "TOKEN_VERSION", "signing_payload"]
