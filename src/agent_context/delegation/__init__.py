"""Capability delegation between agents.

Provides Ed25519-signed delegation tokens that grant one ability over a
resource from an issuing DID to an audience DID until an expiration time.

Quick start
-----------
::

    from agent_context.delegation import DelegationService
    from agent_context.identity import KeyManager

    keys = KeyManager()
    alice, bob = keys.generate(), keys.generate()

    service = DelegationService()
    token = service.issue(alice, bob, "agent/read", ttl_hours=24)
    print(service.verify(token, alice.did, "agent/read").valid)  # True
"""
from __future__ import annotations

from agent_context.delegation.service import DELEGATION_FILENAME, DelegationService
from agent_context.delegation.token import Capability, Delegation, signing_payload
from agent_context.delegation.verification import DenialReason, VerificationResult

__all__ = [
    "Capability",
    "DELEGATION_FILENAME",
    "Delegation",
    "DelegationService",
    "DenialReason",
    "VerificationResult",
    "signing_payload",
]
