"""Ed25519KeyManager — Ed25519 key generation, seeded derivation, signing, and verification.

This module is a thin wrapper around the ``cryptography`` package's Ed25519
primitives. Key material is handled as raw bytes so callers can store or
transmit public keys without depending on this module's internal types.

Seeded derivation
-----------------
An Ed25519 private key *is* a 32-byte seed, so :meth:`keypair_from_seed`
is a pure function: the same seed always produces the same keypair. This is
what lets an agent resume its identity after a restart.
"""
from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from agent_context.errors import ValidationError

SEED_LENGTH: int = 32
PUBLIC_KEY_LENGTH: int = 32
SIGNATURE_LENGTH: int = 64


class Ed25519KeyManager:
    """Ed25519 key management: generate, derive, sign, and verify.

    Example
    -------
    ::

        manager = Ed25519KeyManager()
        seed_key, public_key = manager.keypair_from_seed(seed)
        signature = manager.sign(seed_key, b"memory")
        assert manager.verify(public_key, signature, b"memory")
    """

    def generate_keypair(self) -> tuple[bytes, bytes]:
        """Generate a new random Ed25519 keypair.

        Returns
        -------
        tuple[bytes, bytes]
            Raw ``(private, public)`` key bytes, 32 bytes each.
        """
        private_key = Ed25519PrivateKey.generate()
        return _raw_pair(private_key)

    def keypair_from_seed(self, seed: bytes) -> tuple[bytes, bytes]:
        """Derive the Ed25519 keypair for a 32-byte *seed*.

        Parameters
        ----------
        seed:
            Exactly 32 bytes of secret seed material.

        Returns
        -------
        tuple[bytes, bytes]
            The same ``(private_key_bytes, public_key_bytes)`` pair for the
            same seed on every call.

        Raises
        ------
        ValidationError
            If *seed* is not exactly 32 bytes.
        """
        if not isinstance(seed, (bytes, bytearray)) or len(seed) != SEED_LENGTH:
            length = len(seed) if isinstance(seed, (bytes, bytearray)) else None
            raise ValidationError(
                f"Seed must be exactly {SEED_LENGTH} bytes",
                {"length": length},
            )
        private_key = Ed25519PrivateKey.from_private_bytes(bytes(seed))
        return _raw_pair(private_key)

    def sign(self, private_key_bytes: bytes, data: bytes) -> bytes:
        """Sign *data* with a raw Ed25519 private key.

        Returns
        -------
        bytes
            Raw signature, always 64 bytes.
        """
        private_key = Ed25519PrivateKey.from_private_bytes(private_key_bytes)
        return private_key.sign(data)

    def verify(self, public_key_bytes: bytes, signature: bytes, data: bytes) -> bool:
        """Check *signature* over *data* against a raw public key.

        Malformed keys or signatures are treated as a failed verification
        rather than an error.

        Returns
        -------
        bool
            Whether the signature is genuine.
        """
        if len(public_key_bytes) != PUBLIC_KEY_LENGTH or len(signature) != SIGNATURE_LENGTH:
            return False
        try:
            public_key = Ed25519PublicKey.from_public_bytes(public_key_bytes)
            public_key.verify(signature, data)
            return True
        except (InvalidSignature, ValueError):
            return False


def _raw_pair(private_key: Ed25519PrivateKey) -> tuple[bytes, bytes]:
    private_bytes = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public_bytes = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return private_bytes, public_bytes


__all__ = ["Ed25519KeyManager", "PUBLIC_KEY_LENGTH", "SEED_LENGTH", "SIGNATURE_LENGTH"]
