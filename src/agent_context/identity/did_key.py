"""W3C ``did:key`` encoding for Ed25519 public keys.

Implements the ``did:key`` DID method as specified in:
https://w3c-ccg.github.io/did-method-key/

did:key encoding
----------------
1. Take an Ed25519 public key (32 raw bytes).
2. Prepend the Ed25519 multicodec prefix: ``0xed 0x01`` (2 bytes).
3. Encode the 34-byte result with base58btc.
4. Prefix the encoded string with ``z`` (the multibase indicator for base58btc).
5. Assemble: ``did:key:z<base58btc-encoded>``.

The resulting DID is self-describing: the public key is recoverable from the
DID string alone, without any external registry. The same multibase key
encoding (steps 1-4) is reused for stream name identifiers.
"""
from __future__ import annotations

from agent_context.errors import ValidationError
from agent_context.identity.key_manager import PUBLIC_KEY_LENGTH

DID_KEY_PREFIX: str = "did:key:"

# Multicodec prefix for Ed25519 public keys (varint-encoded 0xed)
_ED25519_MULTICODEC_PREFIX: bytes = b"\xed\x01"

_BASE58_ALPHABET: bytes = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_ALPHABET_STR: str = _BASE58_ALPHABET.decode("ascii")


# ---------------------------------------------------------------------------
# Base58btc codec
# ---------------------------------------------------------------------------


def base58btc_encode(data: bytes) -> str:
    """Encode *data* to a base58btc string."""
    n = int.from_bytes(data, "big")
    result: list[bytes] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_BASE58_ALPHABET[remainder : remainder + 1])
    # Preserve leading zero bytes as '1' characters
    for byte in data:
        if byte == 0:
            result.append(b"1")
        else:
            break
    return b"".join(reversed(result)).decode("ascii")


def base58btc_decode(encoded: str) -> bytes:
    """Decode a base58btc string back to bytes.

    Raises
    ------
    ValidationError
        If the string contains a character not in the base58btc alphabet.
    """
    n = 0
    for char in encoded:
        index = _BASE58_ALPHABET_STR.find(char)
        if index < 0:
            raise ValidationError(
                f"Invalid base58btc character {char!r}",
                {"encoded": encoded},
            )
        n = n * 58 + index
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad_size = len(encoded) - len(encoded.lstrip("1"))
    return b"\x00" * pad_size + result


# ---------------------------------------------------------------------------
# Multibase Ed25519 keys
# ---------------------------------------------------------------------------


def encode_multikey(public_key_bytes: bytes) -> str:
    """Return ``z<base58btc(0xed01 || public_key)>`` for an Ed25519 public key."""
    if len(public_key_bytes) != PUBLIC_KEY_LENGTH:
        raise ValidationError(
            f"Ed25519 public keys are {PUBLIC_KEY_LENGTH} bytes",
            {"length": len(public_key_bytes)},
        )
    return "z" + base58btc_encode(_ED25519_MULTICODEC_PREFIX + public_key_bytes)


def decode_multikey(multikey: str) -> bytes:
    """Recover the raw Ed25519 public key from a ``z``-prefixed multikey.

    Raises
    ------
    ValidationError
        If the multibase prefix, multicodec prefix, or key length is wrong.
    """
    if not multikey.startswith("z") or len(multikey) == 1:
        raise ValidationError(
            "Expected a base58btc multibase value starting with 'z'",
            {"value": multikey},
        )
    decoded = base58btc_decode(multikey[1:])
    if not decoded.startswith(_ED25519_MULTICODEC_PREFIX):
        prefix_hex = decoded[:2].hex()
        raise ValidationError(
            f"Unsupported multicodec prefix 0x{prefix_hex}; only Ed25519 (0xed01) keys are supported",
            {"value": multikey},
        )
    public_key = decoded[len(_ED25519_MULTICODEC_PREFIX) :]
    if len(public_key) != PUBLIC_KEY_LENGTH:
        raise ValidationError(
            f"Decoded key is {len(public_key)} bytes, expected {PUBLIC_KEY_LENGTH}",
            {"value": multikey},
        )
    return public_key


# ---------------------------------------------------------------------------
# did:key
# ---------------------------------------------------------------------------


def public_key_to_did(public_key_bytes: bytes) -> str:
    """Encode a raw Ed25519 public key as a ``did:key`` DID."""
    return DID_KEY_PREFIX + encode_multikey(public_key_bytes)


def public_key_from_did(did: str) -> bytes:
    """Decode the raw Ed25519 public key embedded in a ``did:key`` DID.

    Raises
    ------
    ValidationError
        If *did* is not a well-formed Ed25519 ``did:key``.
    """
    validate_did_key_format(did)
    return decode_multikey(did[len(DID_KEY_PREFIX) :])


def validate_did_key_format(did: str) -> None:
    """Raise :class:`ValidationError` if *did* is not ``did:key:z<encoded>``."""
    if not isinstance(did, str) or not did.startswith(DID_KEY_PREFIX + "z"):
        raise ValidationError(
            f"Invalid did:key format: {did!r}. "
            "Expected format: did:key:z<base58btc-encoded-public-key>",
            {"did": did},
        )
    if len(did) == len(DID_KEY_PREFIX) + 1:
        raise ValidationError(
            f"Invalid did:key format: {did!r}. The encoded key portion is empty.",
            {"did": did},
        )


def is_did_key(did: str) -> bool:
    """Return ``True`` when *did* decodes to an Ed25519 public key."""
    try:
        public_key_from_did(did)
    except ValidationError:
        return False
    return True


__all__ = [
    "DID_KEY_PREFIX",
    "base58btc_decode",
    "base58btc_encode",
    "decode_multikey",
    "encode_multikey",
    "is_did_key",
    "public_key_from_did",
    "public_key_to_did",
    "validate_did_key_format",
]
