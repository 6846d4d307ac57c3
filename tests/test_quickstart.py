"""Test that the quickstart API works for agent-context."""
from __future__ import annotations

import pytest


def test_quickstart_import() -> None:
    import agent_context

    assert agent_context.__version__ == "0.1.0"


@pytest.mark.asyncio
async def test_quickstart_share_memory() -> None:
    from agent_context import AgentRuntime, ContentStore, MemoryIndex

    store, index = ContentStore(), MemoryIndex()
    alice = AgentRuntime.create(store=store, index=index)
    bob = AgentRuntime.create(store=store, index=index)

    cid = await alice.store_memory({"goal": "find-water"})
    token = alice.issue_delegation(bob.did, "agent/read", ttl_hours=24)
    result = await bob.fetch_memory(cid, token)
    assert result.context == {"goal": "find-water"}


def test_quickstart_delegation() -> None:
    from agent_context import DelegationService, KeyManager

    keys = KeyManager()
    alice, bob = keys.generate(), keys.generate()
    service = DelegationService()
    token = service.issue(alice, bob, "agent/read", ttl_hours=24)
    assert service.verify(token, alice.did, "agent/read").valid


def test_quickstart_exports() -> None:
    import agent_context

    for name in agent_context.__all__:
        assert hasattr(agent_context, name), name
