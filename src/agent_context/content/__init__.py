"""Content-addressed persistence.

Quick start
-----------
::

    from agent_context.content import ContentStore, InMemoryContentBackend

    store = ContentStore(InMemoryContentBackend())
    cid = await store.upload_json({"goal": "find-water"}, "memory.json")
    print(await store.fetch_json(cid, "memory.json"))
"""
from __future__ import annotations

from agent_context.content.backend import (
    BackendError,
    BackendErrorCode,
    ContentBackend,
    HttpContentBackend,
    InMemoryContentBackend,
)
from agent_context.content.cid import (
    SIMULATED_CID_PREFIX,
    compute_cid,
    is_simulated_cid,
    simulated_cid,
    validate_cid,
    validate_filename,
)
from agent_context.content.retry import RetryPolicy, call_with_retry
from agent_context.content.store import ContentStore, canonical_json

__all__ = [
    "BackendError",
    "BackendErrorCode",
    "ContentBackend",
    "ContentStore",
    "HttpContentBackend",
    "InMemoryContentBackend",
    "RetryPolicy",
    "SIMULATED_CID_PREFIX",
    "call_with_retry",
    "canonical_json",
    "compute_cid",
    "is_simulated_cid",
    "simulated_cid",
    "validate_cid",
    "validate_filename",
]
