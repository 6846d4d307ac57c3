"""AgentRuntime — the operations an agent actually calls.

Composes an :class:`~agent_context.identity.identity.Identity`, a
:class:`~agent_context.content.store.ContentStore`, a
:class:`~agent_context.stream.stream.MutableStream`, a
:class:`~agent_context.delegation.service.DelegationService`, and a
:class:`~agent_context.memory_index.MemoryIndex`. Several runtimes (one per
agent) can share the same store, stream backend, and index to model agents
talking over one network.

Memories are stored as a JSON envelope::

    {"agent_id": <owner did>, "timestamp": <iso-8601>, "context": <caller json>}

Reading a memory you do not own requires a delegation token issued by the
owner to you, granting ``agent/read``.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from agent_context.content.cid import validate_cid
from agent_context.content.store import ContentStore
from agent_context.delegation.service import DelegationService
from agent_context.delegation.token import Delegation
from agent_context.delegation.verification import VerificationResult
from agent_context.errors import AgentContextError, ErrorKind, ValidationError
from agent_context.identity.identity import Identity, KeyManager
from agent_context.memory_index import MemoryIndex
from agent_context.stream.revision import Revision, StreamName
from agent_context.stream.stream import MutableStream

logger = logging.getLogger(__name__)

READ_ABILITY = "agent/read"
MEMORY_FILENAME = "memory.json"
DEFAULT_TTL_HOURS = 24

MISSING_DELEGATION = "missing delegation"
MALFORMED_DELEGATION = "malformed delegation"
AUDIENCE_MISMATCH = "audience mismatch"


class FetchStatus(str, Enum):
    """Discriminant for :class:`MemoryFetchResult`."""

    OK = "ok"
    DENIED = "denied"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class MemoryFetchResult:
    """Outcome of a memory or stream read.

    Parameters
    ----------
    status:
        Which outcome occurred.
    cid:
        The memory CID involved, when known.
    context:
        The stored JSON context; only set when ``status`` is ``OK``.
    reason:
        Why access was denied; only set when ``status`` is ``DENIED``.
    owner_did:
        Owner of the memory, when known.
    """

    status: FetchStatus
    cid: str | None = None
    context: Any = None
    reason: str | None = None
    owner_did: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK

    def raise_for_status(self) -> Any:
        """Return :attr:`context` (``None`` when not found), or raise when denied.

        Raises
        ------
        AgentContextError
            With kind ``AUTH_DENIED`` when access was denied.
        """
        if self.status == FetchStatus.DENIED:
            raise AgentContextError(
                ErrorKind.AUTH_DENIED,
                f"Access to {self.cid} denied: {self.reason}",
                {"cid": self.cid, "reason": self.reason},
            )
        return self.context

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"status": self.status.value, "cid": self.cid}
        if self.status == FetchStatus.OK:
            data["context"] = self.context
        if self.reason is not None:
            data["reason"] = self.reason
        if self.owner_did is not None:
            data["owner_did"] = self.owner_did
        return data


class AgentRuntime:
    """One agent's view of the memory, stream, and delegation services.

    Parameters
    ----------
    identity:
        This agent's identity. Its private key never leaves the runtime.
    store:
        Shared content store; defaults to a fully simulated store.
    streams:
        Shared mutable-stream service; defaults to an in-memory backend.
    delegations:
        Delegation service; defaults to one using the system clock.
    index:
        Shared memory ownership index.

    Example
    -------
    ::

        alice = AgentRuntime.create(store=store, index=index)
        bob = AgentRuntime.create(store=store, index=index)

        cid = await alice.store_memory({"goal": "find-water"})
        token = alice.issue_delegation(bob.did)
        result = await bob.fetch_memory(cid, token)
        assert result.context == {"goal": "find-water"}
    """

    def __init__(
        self,
        identity: Identity,
        store: ContentStore | None = None,
        streams: MutableStream | None = None,
        delegations: DelegationService | None = None,
        index: MemoryIndex | None = None,
    ) -> None:
        self._identity = identity
        self._store = store or ContentStore()
        self._streams = streams or MutableStream()
        self._delegations = delegations or DelegationService()
        self._index = index if index is not None else MemoryIndex()
        self._owned_streams: dict[str, tuple[StreamName, Revision]] = {}

    @classmethod
    def create(
        cls,
        seed: bytes | None = None,
        store: ContentStore | None = None,
        streams: MutableStream | None = None,
        delegations: DelegationService | None = None,
        index: MemoryIndex | None = None,
    ) -> "AgentRuntime":
        """Build a runtime with a fresh identity, or the one derived from *seed*."""
        keys = KeyManager()
        identity = keys.from_seed(seed) if seed is not None else keys.generate()
        return cls(identity, store=store, streams=streams, delegations=delegations, index=index)

    @staticmethod
    def create_identity() -> Identity:
        """Generate a fresh identity not bound to any runtime."""
        return KeyManager().generate()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def did(self) -> str:
        return self._identity.did

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def store(self) -> ContentStore:
        return self._store

    @property
    def index(self) -> MemoryIndex:
        return self._index

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    async def store_memory(self, context: Any, owner_did: str | None = None) -> str:
        """Upload *context* and record its owner; return the CID.

        Parameters
        ----------
        context:
            Any JSON-serializable value.
        owner_did:
            Owner to record; defaults to this runtime's DID.

        Raises
        ------
        ValidationError
            If *context* is not JSON-serializable.
        NetworkError
            If the upload failed and no fallback applied.
        """
        owner = owner_did or self.did
        envelope = {
            "agent_id": owner,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "context": context,
        }
        try:
            cid = await self._store.upload_json(envelope, MEMORY_FILENAME)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Memory context is not JSON-serializable: {exc}") from exc
        self._index.register(cid, owner)
        logger.info("Stored memory %s for %s", cid, owner)
        return cid

    async def fetch_memory(
        self,
        cid: str,
        delegation_token: str | bytes | None = None,
    ) -> MemoryFetchResult:
        """Read the memory at *cid*, authorizing with *delegation_token* if needed.

        The owner reads without a token. Anyone else must present a token,
        either as a transport string or as serialized bytes, issued by the
        owner to this runtime's DID and granting ``agent/read``.

        Raises
        ------
        ValidationError
            If *cid* is malformed or the stored bytes are not JSON.
        NetworkError
            If the content backend kept failing.
        """
        validate_cid(cid)
        record = self._index.get(cid)
        if record is None:
            return MemoryFetchResult(FetchStatus.NOT_FOUND, cid=cid)

        if record.owner_did != self.did:
            reason = self._authorize(record.owner_did, delegation_token)
            if reason is not None:
                logger.info("Denied %s read of %s: %s", self.did, cid, reason)
                return MemoryFetchResult(
                    FetchStatus.DENIED,
                    cid=cid,
                    reason=reason,
                    owner_did=record.owner_did,
                )

        envelope = await self._store.fetch_json(cid, MEMORY_FILENAME)
        if envelope is None:
            return MemoryFetchResult(FetchStatus.NOT_FOUND, cid=cid, owner_did=record.owner_did)
        context = envelope.get("context") if isinstance(envelope, dict) else envelope
        return MemoryFetchResult(
            FetchStatus.OK,
            cid=cid,
            context=context,
            owner_did=record.owner_did,
        )

    def _authorize(self, owner_did: str, token: str | bytes | None) -> str | None:
        """Return a denial reason, or ``None`` when *token* grants this runtime read access."""
        if token is None:
            return MISSING_DELEGATION
        try:
            delegation = self._decode(token)
        except ValidationError:
            return MALFORMED_DELEGATION
        result = self._delegations.verify(
            delegation, owner_did, READ_ABILITY, expected_resource=owner_did
        )
        if not result.valid:
            return result.reason.value if result.reason is not None else None
        if delegation.audience_did != self.did:
            return AUDIENCE_MISMATCH
        return None

    def _decode(self, token: str | bytes) -> Delegation:
        if isinstance(token, (bytes, bytearray)):
            return self._delegations.deserialize(bytes(token))
        return self._delegations.from_transport_string(token)

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    def issue_delegation(
        self,
        audience: Identity | str,
        ability: str = READ_ABILITY,
        ttl_hours: float = DEFAULT_TTL_HOURS,
    ) -> str:
        """Issue a delegation from this agent and return its transport string."""
        delegation = self._delegations.issue(self._identity, audience, ability, ttl_hours)
        return self._delegations.to_transport_string(delegation)

    def verify_delegation(
        self,
        token: str,
        expected_issuer: str,
        expected_ability: str = READ_ABILITY,
    ) -> VerificationResult:
        """Decode *token* and verify it locally.

        Raises
        ------
        ValidationError
            If *token* cannot be decoded.
        """
        delegation = self._delegations.from_transport_string(token)
        return self._delegations.verify(delegation, expected_issuer, expected_ability)

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    async def start_stream(self, initial_context: Any) -> str:
        """Create a stream owned by this agent, publish revision 0, return its id."""
        name = self._streams.create_name()
        cid = await self.store_memory(initial_context)
        revision = await self._streams.publish(name, cid)
        self._owned_streams[name.name_id] = (name, revision)
        return name.name_id

    async def update_stream(self, stream_id: str, context: Any) -> Revision:
        """Store *context* and publish it as the next revision of *stream_id*.

        Raises
        ------
        ValidationError
            If this runtime does not hold the key for *stream_id*.
        """
        owned = self._owned_streams.get(stream_id)
        if owned is None:
            raise ValidationError(
                f"Stream {stream_id!r} was not started by this agent",
                {"stream_id": stream_id},
            )
        name, previous = owned
        cid = await self.store_memory(context)
        revision = await self._streams.publish(name, cid, previous)
        self._owned_streams[stream_id] = (name, revision)
        return revision

    async def fetch_stream(
        self,
        stream_id: str,
        delegation_token: str | bytes | None = None,
    ) -> MemoryFetchResult:
        """Resolve *stream_id* to its latest memory and read it like :meth:`fetch_memory`."""
        cid = await self._streams.resolve(stream_id)
        if cid is None:
            return MemoryFetchResult(FetchStatus.NOT_FOUND)
        return await self.fetch_memory(cid, delegation_token)

    def __repr__(self) -> str:
        return f"AgentRuntime(did={self.did!r}, streams={len(self._owned_streams)})"


__all__ = [
    "AUDIENCE_MISMATCH",
    "AgentRuntime",
    "FetchStatus",
    "MALFORMED_DELEGATION",
    "MISSING_DELEGATION",
    "MemoryFetchResult",
    "READ_ABILITY",
]
