"""Identity and KeyManager — per-agent signing identity with a ``did:key`` address.

An :class:`Identity` is created once at agent boot, either from fresh
randomness (:meth:`KeyManager.generate`) or deterministically from a 32-byte
seed (:meth:`KeyManager.from_seed`). It is never mutated, and its private key
is never serialized.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from agent_context.errors import ValidationError
from agent_context.identity.did_key import public_key_from_did, public_key_to_did
from agent_context.identity.key_manager import Ed25519KeyManager

_KEY_MANAGER = Ed25519KeyManager()


@dataclass(frozen=True)
class Identity:
    """An agent's Ed25519 keypair and the DID derived from it.

    Parameters
    ----------
    public_key:
        The 32-byte raw Ed25519 public key.
    private_key:
        The 32-byte raw Ed25519 private key. Excluded from ``repr``.
    """

    public_key: bytes
    private_key: bytes = field(repr=False)

    @property
    def did(self) -> str:
        """The ``did:key`` identifier for :attr:`public_key`."""
        return public_key_to_did(self.public_key)

    def sign(self, data: bytes) -> bytes:
        """Sign *data* with this identity's private key."""
        return _KEY_MANAGER.sign(self.private_key, data)

    def to_dict(self) -> dict[str, object]:
        """Serialize the public half of the identity.

        Private key bytes are intentionally omitted from the output.
        """
        return {
            "did": self.did,
            "public_key_hex": self.public_key.hex(),
        }


class KeyManager:
    """Factory for :class:`Identity` objects.

    Holds no state beyond the underlying :class:`Ed25519KeyManager`; there is
    no registry and no revocation.

    Example
    -------
    ::

        keys = KeyManager()
        alice = keys.generate()
        resumed = keys.from_seed(seed)
        print(keys.did(alice))
    """

    def __init__(self, key_manager: Ed25519KeyManager | None = None) -> None:
        self._key_manager = key_manager or _KEY_MANAGER

    def generate(self) -> Identity:
        """Create an identity from a fresh random keypair."""
        private_bytes, public_bytes = self._key_manager.generate_keypair()
        return Identity(public_key=public_bytes, private_key=private_bytes)

    def from_seed(self, seed: bytes) -> Identity:
        """Deterministically reconstruct the identity for a 32-byte *seed*.

        Raises
        ------
        ValidationError
            If *seed* is not exactly 32 bytes.
        """
        private_bytes, public_bytes = self._key_manager.keypair_from_seed(seed)
        return Identity(public_key=public_bytes, private_key=private_bytes)

    def from_seed_hex(self, seed_hex: str) -> Identity:
        """Like :meth:`from_seed` but takes the seed as a hex string."""
        try:
            seed = bytes.fromhex(seed_hex.strip())
        except ValueError as exc:
            raise ValidationError(f"Seed is not valid hex: {exc}") from exc
        return self.from_seed(seed)

    def did(self, identity: Identity) -> str:
        """Return the ``did:key`` for *identity*."""
        return identity.did


def verify_signature(did: str, data: bytes, signature: bytes) -> bool:
    """Verify *signature* over *data* against the key embedded in *did*.

    Returns ``False`` (rather than raising) when *did* is malformed, so that a
    verifier can treat an undecodable issuer exactly like a bad signature.
    """
    try:
        public_key = public_key_from_did(did)
    except ValidationError:
        return False
    return _KEY_MANAGER.verify(public_key, signature, data)


__all__ = ["Identity", "KeyManager", "verify_signature"]
