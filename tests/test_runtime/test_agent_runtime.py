"""Tests for agent_context.runtime — memory sharing between agents.

Three agents share one store, one name backend, and one memory index:
Alice stores a memory and delegates read access to Bob; Carol has no grant.
"""
from __future__ import annotations

import pytest

from agent_context.content import ContentStore, InMemoryContentBackend, compute_cid
from agent_context.delegation import DelegationService
from agent_context.errors import AgentContextError, ErrorKind, ValidationError
from agent_context.memory_index import MemoryIndex
from agent_context.runtime import (
    AUDIENCE_MISMATCH,
    MALFORMED_DELEGATION,
    MISSING_DELEGATION,
    AgentRuntime,
    FetchStatus,
    MemoryFetchResult,
)
from agent_context.stream import InMemoryNameBackend, MutableStream

NOW = 1_700_000_000
GOAL = {"goal": "find-water", "priority": 1}


class FixedClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Network:
    """Shared services for a group of agents."""

    def __init__(self, backend: InMemoryContentBackend | None = None) -> None:
        self.store = ContentStore(backend)
        self.names = InMemoryNameBackend()
        self.index = MemoryIndex()
        self.clock = FixedClock()

    def agent(self, seed: bytes | None = None) -> AgentRuntime:
        return AgentRuntime.create(
            seed=seed,
            store=self.store,
            streams=MutableStream(self.names),
            delegations=DelegationService(clock=self.clock),
            index=self.index,
        )


@pytest.fixture()
def network() -> Network:
    return Network()


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestCreate:
    def test_create_from_seed_is_stable(self) -> None:
        assert AgentRuntime.create(seed=b"\x07" * 32).did == AgentRuntime.create(seed=b"\x07" * 32).did

    def test_create_without_seed_is_random(self) -> None:
        assert AgentRuntime.create().did != AgentRuntime.create().did

    def test_create_rejects_short_seed(self) -> None:
        with pytest.raises(ValidationError):
            AgentRuntime.create(seed=b"short")

    def test_create_identity(self) -> None:
        assert AgentRuntime.create_identity().did.startswith("did:key:z6Mk")

    def test_repr(self) -> None:
        runtime = AgentRuntime.create()
        assert runtime.did in repr(runtime)


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


class TestMemorySharing:
    @pytest.mark.asyncio
    async def test_owner_reads_without_token(self, network: Network) -> None:
        alice = network.agent()
        cid = await alice.store_memory(GOAL)
        result = await alice.fetch_memory(cid)
        assert result.ok
        assert result.context == GOAL
        assert result.owner_did == alice.did

    @pytest.mark.asyncio
    async def test_store_registers_owner(self, network: Network) -> None:
        alice = network.agent()
        cid = await alice.store_memory(GOAL)
        record = network.index.get(cid)
        assert record is not None and record.owner_did == alice.did

    @pytest.mark.asyncio
    async def test_delegated_read(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        token = alice.issue_delegation(bob.did, "agent/read", ttl_hours=24)
        result = await bob.fetch_memory(cid, token)
        assert result.status == FetchStatus.OK
        assert result.context == GOAL

    @pytest.mark.asyncio
    async def test_delegated_read_with_serialized_bytes(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        service = DelegationService(clock=network.clock)
        token = service.issue(alice.identity, bob.did, "agent/read", 1)
        result = await bob.fetch_memory(cid, service.serialize(token))
        assert result.ok

    @pytest.mark.asyncio
    async def test_missing_token_denied(self, network: Network) -> None:
        alice, carol = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        result = await carol.fetch_memory(cid)
        assert result.status == FetchStatus.DENIED
        assert result.reason == MISSING_DELEGATION
        assert result.context is None

    @pytest.mark.asyncio
    async def test_stolen_token_denied_for_audience(self, network: Network) -> None:
        alice, bob, carol = network.agent(), network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        token = alice.issue_delegation(bob.did)
        result = await carol.fetch_memory(cid, token)
        assert result.reason == AUDIENCE_MISMATCH

    @pytest.mark.asyncio
    async def test_token_from_non_owner_denied(self, network: Network) -> None:
        alice, bob, carol = network.agent(), network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        token = carol.issue_delegation(bob.did)
        result = await bob.fetch_memory(cid, token)
        assert result.reason == "issuer mismatch"

    @pytest.mark.asyncio
    async def test_wrong_ability_denied(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        token = alice.issue_delegation(bob.did, "agent/write")
        result = await bob.fetch_memory(cid, token)
        assert result.reason == "capability mismatch"

    @pytest.mark.asyncio
    async def test_token_scoped_to_other_resource_denied(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        service = DelegationService(clock=network.clock)
        token = service.issue(alice.identity, bob.did, "agent/read", 1, resource="memory:diary")
        result = await bob.fetch_memory(cid, service.to_transport_string(token))
        assert result.status == FetchStatus.DENIED
        assert result.reason == "capability mismatch"

    @pytest.mark.asyncio
    async def test_expired_token_denied(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        token = alice.issue_delegation(bob.did, ttl_hours=1)
        network.clock.now = NOW + 3600
        result = await bob.fetch_memory(cid, token)
        assert result.reason == "expired"

    @pytest.mark.asyncio
    async def test_malformed_token_denied(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        result = await bob.fetch_memory(cid, "definitely-not-a-token")
        assert result.reason == MALFORMED_DELEGATION

    @pytest.mark.asyncio
    async def test_unknown_cid_not_found(self, network: Network) -> None:
        bob = network.agent()
        result = await bob.fetch_memory(compute_cid(b"never stored"))
        assert result.status == FetchStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_malformed_cid_raises(self, network: Network) -> None:
        with pytest.raises(ValidationError):
            await network.agent().fetch_memory("not-a-cid")

    @pytest.mark.asyncio
    async def test_non_json_context_raises(self, network: Network) -> None:
        with pytest.raises(ValidationError, match="JSON"):
            await network.agent().store_memory({"bad": object()})

    @pytest.mark.asyncio
    async def test_works_over_real_cids(self) -> None:
        network = Network(InMemoryContentBackend())
        alice, bob = network.agent(), network.agent()
        cid = await alice.store_memory(GOAL)
        assert cid.startswith("bafkrei")
        result = await bob.fetch_memory(cid, alice.issue_delegation(bob.did))
        assert result.context == GOAL


class TestVerifyDelegation:
    def test_verify_delegation(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        token = alice.issue_delegation(bob.did)
        assert bob.verify_delegation(token, alice.did).valid
        assert not bob.verify_delegation(token, bob.did).valid

    def test_verify_delegation_rejects_garbage(self, network: Network) -> None:
        with pytest.raises(ValidationError):
            network.agent().verify_delegation("", "did:key:z6Mk")


class TestMemoryFetchResult:
    def test_raise_for_status_denied(self) -> None:
        result = MemoryFetchResult(FetchStatus.DENIED, cid="bafkreix", reason=MISSING_DELEGATION)
        with pytest.raises(AgentContextError) as exc_info:
            result.raise_for_status()
        assert exc_info.value.kind == ErrorKind.AUTH_DENIED
        assert exc_info.value.details["reason"] == MISSING_DELEGATION

    def test_raise_for_status_ok_returns_context(self) -> None:
        assert MemoryFetchResult(FetchStatus.OK, context=GOAL).raise_for_status() == GOAL

    def test_raise_for_status_not_found_returns_none(self) -> None:
        assert MemoryFetchResult(FetchStatus.NOT_FOUND).raise_for_status() is None

    def test_to_dict(self) -> None:
        data = MemoryFetchResult(FetchStatus.DENIED, cid="c", reason="expired", owner_did="did:x").to_dict()
        assert data == {"status": "denied", "cid": "c", "reason": "expired", "owner_did": "did:x"}


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class TestStreams:
    @pytest.mark.asyncio
    async def test_owner_follows_stream(self, network: Network) -> None:
        alice = network.agent()
        stream_id = await alice.start_stream({"step": 0})
        await alice.update_stream(stream_id, {"step": 1})
        result = await alice.fetch_stream(stream_id)
        assert result.context == {"step": 1}

    @pytest.mark.asyncio
    async def test_update_increments_sequence(self, network: Network) -> None:
        alice = network.agent()
        stream_id = await alice.start_stream({"step": 0})
        first = await alice.update_stream(stream_id, {"step": 1})
        second = await alice.update_stream(stream_id, {"step": 2})
        assert (first.sequence, second.sequence) == (1, 2)

    @pytest.mark.asyncio
    async def test_delegated_reader_sees_latest(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        stream_id = await alice.start_stream({"step": 0})
        token = alice.issue_delegation(bob.did)
        await alice.update_stream(stream_id, {"step": 1})
        result = await bob.fetch_stream(stream_id, token)
        assert result.ok
        assert result.context == {"step": 1}

    @pytest.mark.asyncio
    async def test_reader_without_token_denied(self, network: Network) -> None:
        alice, carol = network.agent(), network.agent()
        stream_id = await alice.start_stream({"step": 0})
        result = await carol.fetch_stream(stream_id)
        assert result.reason == MISSING_DELEGATION

    @pytest.mark.asyncio
    async def test_update_foreign_stream_rejected(self, network: Network) -> None:
        alice, bob = network.agent(), network.agent()
        stream_id = await alice.start_stream({"step": 0})
        with pytest.raises(ValidationError, match="not started by this agent"):
            await bob.update_stream(stream_id, {"step": 99})

    @pytest.mark.asyncio
    async def test_unpublished_stream_not_found(self, network: Network) -> None:
        alice = network.agent()
        name = MutableStream().create_name()
        result = await alice.fetch_stream(name.name_id)
        assert result.status == FetchStatus.NOT_FOUND
