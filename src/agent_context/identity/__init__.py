"""Agent identities: Ed25519 keypairs addressed by W3C ``did:key`` DIDs.

Quick start
-----------
::

    from agent_context.identity import KeyManager, verify_signature

    keys = KeyManager()
    agent = keys.generate()
    signature = agent.sign(b"hello")
    assert verify_signature(agent.did, b"hello", signature)
"""
from __future__ import annotations

from agent_context.identity.did_key import (
    DID_KEY_PREFIX,
    is_did_key,
    public_key_from_did,
    public_key_to_did,
    validate_did_key_format,
)
from agent_context.identity.identity import Identity, KeyManager, verify_signature
from agent_context.identity.key_manager import Ed25519KeyManager

__all__ = [
    "DID_KEY_PREFIX",
    "Ed25519KeyManager",
    "Identity",
    "KeyManager",
    "is_did_key",
    "public_key_from_did",
    "public_key_to_did",
    "validate_did_key_format",
    "verify_signature",
]
