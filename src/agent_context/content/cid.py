"""Content identifiers: computation, simulation, and validation.

Locally computed CIDs are CIDv1 with the ``raw`` multicodec (0x55), a
sha2-256 multihash, and base32-lower multibase (prefix ``b``), which is the
same form IPFS produces for a single raw block, e.g. ``bafkrei...``.

Simulated CIDs are produced when no real network target accepted the upload.
They use the documented :data:`SIMULATED_CID_PREFIX` so an observer can tell at
a glance that the address is not globally resolvable.
"""
from __future__ import annotations

import base64
import hashlib
import re

from agent_context.errors import ValidationError

SIMULATED_CID_PREFIX: str = "bafysim_"

_CID_VERSION_1: bytes = b"\x01"
_RAW_CODEC: bytes = b"\x55"
_SHA2_256_MULTIHASH: bytes = b"\x12\x20"

_CIDV0_PATTERN = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
_CIDV1_BASE32_PATTERN = re.compile(r"^b[a-z2-7]{20,}$")
_SIMULATED_PATTERN = re.compile(r"^" + re.escape(SIMULATED_CID_PREFIX) + r"[a-z2-7]{52}$")
_MAX_CID_LENGTH = 512

_FORBIDDEN_FILENAMES = {".", ".."}


def _base32_lower(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def compute_cid(data: bytes) -> str:
    """Return the CIDv1 (raw, sha2-256, base32) for *data*."""
    digest = hashlib.sha256(data).digest()
    return "b" + _base32_lower(_CID_VERSION_1 + _RAW_CODEC + _SHA2_256_MULTIHASH + digest)


def simulated_cid(data: bytes) -> str:
    """Return the deterministic simulated identifier for *data*."""
    return SIMULATED_CID_PREFIX + _base32_lower(hashlib.sha256(data).digest())


def is_simulated_cid(cid: str) -> bool:
    """Return ``True`` when *cid* carries the simulated-storage prefix."""
    return cid.startswith(SIMULATED_CID_PREFIX)


def validate_cid(cid: str) -> str:
    """Return *cid* unchanged if it is a recognised CID, else raise.

    Accepts CIDv0 (``Qm...``), base32 CIDv1 (``b...``), and simulated CIDs.

    Raises
    ------
    ValidationError
        If *cid* is not a string or does not match any accepted form.
    """
    if not isinstance(cid, str) or not cid or len(cid) > _MAX_CID_LENGTH:
        raise ValidationError("CID must be a non-empty string", {"cid": cid})
    if is_simulated_cid(cid):
        if not _SIMULATED_PATTERN.match(cid):
            raise ValidationError(f"Malformed simulated CID {cid!r}", {"cid": cid})
        return cid
    if _CIDV0_PATTERN.match(cid) or _CIDV1_BASE32_PATTERN.match(cid):
        return cid
    raise ValidationError(f"Malformed CID {cid!r}", {"cid": cid})


def validate_filename(filename: str) -> str:
    """Return *filename* unchanged if it is a single safe path segment, else raise.

    Raises
    ------
    ValidationError
        For empty names, path separators, ``.``/``..``, or control characters.
    """
    if not isinstance(filename, str) or not filename:
        raise ValidationError("Filename must be a non-empty string", {"filename": filename})
    if filename in _FORBIDDEN_FILENAMES or "/" in filename or "\\" in filename:
        raise ValidationError(
            f"Filename {filename!r} must be a single path segment",
            {"filename": filename},
        )
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in filename):
        raise ValidationError(
            "Filename must not contain control characters",
            {"filename": filename},
        )
    return filename


__all__ = [
    "SIMULATED_CID_PREFIX",
    "compute_cid",
    "is_simulated_cid",
    "simulated_cid",
    "validate_cid",
    "validate_filename",
]
