"""agent-context — content-addressed agent memory with signed capability delegation.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import agent_context
>>> agent_context.__version__
'0.1.0'

Quick start
-----------
::

    from agent_context import AgentRuntime, ContentStore, MemoryIndex

    store, index = ContentStore(), MemoryIndex()
    alice = AgentRuntime.create(store=store, index=index)
    bob = AgentRuntime.create(store=store, index=index)

    cid = await alice.store_memory({"goal": "find-water"})
    token = alice.issue_delegation(bob.did, "agent/read", ttl_hours=24)
    result = await bob.fetch_memory(cid, token)
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from agent_context.errors import AgentContextError, ErrorKind, NetworkError, ValidationError

# ------------------------------------------------------------------
# Identity
# ------------------------------------------------------------------
from agent_context.identity import Ed25519KeyManager, Identity, KeyManager, verify_signature

# ------------------------------------------------------------------
# Content store
# ------------------------------------------------------------------
from agent_context.content import (
    SIMULATED_CID_PREFIX,
    ContentBackend,
    ContentStore,
    HttpContentBackend,
    InMemoryContentBackend,
    RetryPolicy,
    is_simulated_cid,
)

# ------------------------------------------------------------------
# Mutable streams
# ------------------------------------------------------------------
from agent_context.stream import (
    HttpNameBackend,
    InMemoryNameBackend,
    MutableStream,
    NameBackend,
    Revision,
    StreamName,
)

# ------------------------------------------------------------------
# Delegation
# ------------------------------------------------------------------
from agent_context.delegation import (
    Capability,
    Delegation,
    DelegationService,
    DenialReason,
    VerificationResult,
)

# ------------------------------------------------------------------
# Runtime
# ------------------------------------------------------------------
from agent_context.config import Settings
from agent_context.memory_index import MemoryIndex, MemoryRecord
from agent_context.runtime import AgentRuntime, FetchStatus, MemoryFetchResult

__all__ = [
    "__version__",
    # errors
    "AgentContextError",
    "ErrorKind",
    "NetworkError",
    "ValidationError",
    # identity
    "Ed25519KeyManager",
    "Identity",
    "KeyManager",
    "verify_signature",
    # content
    "ContentBackend",
    "ContentStore",
    "HttpContentBackend",
    "InMemoryContentBackend",
    "RetryPolicy",
    "SIMULATED_CID_PREFIX",
    "is_simulated_cid",
    # streams
    "HttpNameBackend",
    "InMemoryNameBackend",
    "MutableStream",
    "NameBackend",
    "Revision",
    "StreamName",
    # delegation
    "Capability",
    "Delegation",
    "DelegationService",
    "DenialReason",
    "VerificationResult",
    # runtime
    "AgentRuntime",
    "FetchStatus",
    "MemoryFetchResult",
    "MemoryIndex",
    "MemoryRecord",
    "Settings",
]
