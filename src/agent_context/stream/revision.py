"""StreamName and Revision — signed, append-only pointers to content.

A :class:`StreamName` is a dedicated Ed25519 keypair, separate from any agent
identity, whose public key is embedded in its identifier::

    stream:z<base58btc(0xed01 || public_key)>

A :class:`Revision` binds a sequence number to a CID and is signed by the
stream key over the canonical JSON ``{"sequence": n, "value": cid}``. Anyone
holding the identifier can check a revision without contacting its author.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field

from agent_context.content.cid import validate_cid
from agent_context.errors import ValidationError
from agent_context.identity.did_key import decode_multikey, encode_multikey
from agent_context.identity.key_manager import Ed25519KeyManager

STREAM_ID_PREFIX: str = "stream:"

_KEY_MANAGER = Ed25519KeyManager()


@dataclass(frozen=True)
class StreamName:
    """Signing keypair for one logical stream."""

    public_key: bytes
    private_key: bytes = field(repr=False)

    @classmethod
    def create(cls, key_manager: Ed25519KeyManager | None = None) -> "StreamName":
        """Create a stream name from a fresh random keypair."""
        private_bytes, public_bytes = (key_manager or _KEY_MANAGER).generate_keypair()
        return cls(public_key=public_bytes, private_key=private_bytes)

    @property
    def name_id(self) -> str:
        """Stable, printable identifier usable as a lookup key."""
        return STREAM_ID_PREFIX + encode_multikey(self.public_key)

    def sign(self, data: bytes) -> bytes:
        return _KEY_MANAGER.sign(self.private_key, data)


def validate_stream_id(name_id: str) -> bytes:
    """Return the public key embedded in *name_id*, or raise.

    Raises
    ------
    ValidationError
        If *name_id* is not ``stream:z<multikey>``.
    """
    if not isinstance(name_id, str) or not name_id.startswith(STREAM_ID_PREFIX):
        raise ValidationError(
            f"Invalid stream id {name_id!r}; expected {STREAM_ID_PREFIX}z<multikey>",
            {"name_id": name_id},
        )
    return decode_multikey(name_id[len(STREAM_ID_PREFIX) :])


def revision_payload(sequence: int, points_to: str) -> bytes:
    """Canonical bytes signed for a revision."""
    return json.dumps(
        {"sequence": sequence, "value": points_to},
        sort_keys=True,
        separators=(",", ":"),
    ).encode("utf-8")


@dataclass(frozen=True)
class Revision:
    """One signed publication of a stream.

    Parameters
    ----------
    name_id:
        Identifier of the stream this revision belongs to.
    sequence:
        Zero-based, strictly increasing publication counter.
    points_to:
        CID the stream resolves to at this revision.
    signature:
        64-byte Ed25519 signature over :func:`revision_payload`.
    """

    name_id: str
    sequence: int
    points_to: str
    signature: bytes

    @classmethod
    def create(cls, name: StreamName, sequence: int, points_to: str) -> "Revision":
        """Build and sign a revision for *name*."""
        if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
            raise ValidationError(f"Sequence must be a non-negative integer, got {sequence!r}")
        validate_cid(points_to)
        signature = name.sign(revision_payload(sequence, points_to))
        return cls(name_id=name.name_id, sequence=sequence, points_to=points_to, signature=signature)

    def verify(self) -> bool:
        """Return ``True`` when the signature matches the key in :attr:`name_id`."""
        try:
            public_key = validate_stream_id(self.name_id)
        except ValidationError:
            return False
        return _KEY_MANAGER.verify(
            public_key,
            self.signature,
            revision_payload(self.sequence, self.points_to),
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name_id,
            "sequence": self.sequence,
            "value": self.points_to,
            "signature": base64.urlsafe_b64encode(self.signature).decode("ascii").rstrip("="),
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Revision":
        """Reconstruct a revision from :meth:`to_dict` output.

        Raises
        ------
        ValidationError
            If fields are missing or have the wrong type.
        """
        try:
            name_id = data["name"]
            sequence = data["sequence"]
            points_to = data["value"]
            signature_text = data["signature"]
        except (KeyError, TypeError) as exc:
            raise ValidationError(f"Revision record is missing a field: {exc}") from exc
        if not isinstance(name_id, str) or not isinstance(points_to, str):
            raise ValidationError("Revision name and value must be strings")
        if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
            raise ValidationError(f"Revision sequence must be a non-negative integer, got {sequence!r}")
        if not isinstance(signature_text, str):
            raise ValidationError("Revision signature must be a base64url string")
        try:
            signature = base64.urlsafe_b64decode(signature_text + "=" * (-len(signature_text) % 4))
        except (binascii.Error, ValueError) as exc:
            raise ValidationError(f"Revision signature is not base64url: {exc}") from exc
        return cls(name_id=name_id, sequence=sequence, points_to=points_to, signature=signature)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Revision":
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(f"Revision record is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValidationError("Revision record must be a JSON object")
        return cls.from_dict(data)


__all__ = [
    "Revision",
    "STREAM_ID_PREFIX",
    "StreamName",
    "revision_payload",
    "validate_stream_id",
]
