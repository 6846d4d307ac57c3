"""MutableStream — a stable name that resolves to the latest published CID.

Sequence numbers move ``Unpublished → 0 → 1 → 2 → …`` and never go back.
There is no delete and no rollback. Publishes to one name must be serialized
by the caller; concurrent writers to the same name are not arbitrated.

The resolver checks every revision it fetches against the key embedded in the
stream id, drops any that fail, and remembers the highest sequence it has
seen per name, so a stale or replayed backend answer can never move a reader
backwards.
"""
from __future__ import annotations

import logging
import threading

from agent_context.content.backend import BackendError
from agent_context.content.cid import validate_cid
from agent_context.content.retry import RetryPolicy, Sleep, call_with_retry
from agent_context.errors import NetworkError, ValidationError
from agent_context.stream.backend import InMemoryNameBackend, NameBackend
from agent_context.stream.revision import Revision, StreamName, validate_stream_id

logger = logging.getLogger(__name__)


class MutableStream:
    """Publish and resolve signed revisions of mutable names.

    Parameters
    ----------
    backend:
        Name backend; defaults to a fresh :class:`InMemoryNameBackend`.
    retry_policy:
        Attempt limit and backoff for backend calls.
    sleep:
        Awaitable sleep used between attempts; injectable for tests.

    Example
    -------
    ::

        streams = MutableStream()
        name = streams.create_name()
        rev0 = await streams.publish(name, cid1)
        rev1 = await streams.publish(name, cid2, rev0)
        assert await streams.resolve(name.name_id) == cid2
    """

    def __init__(
        self,
        backend: NameBackend | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._backend = backend or InMemoryNameBackend()
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._highest: dict[str, Revision] = {}
        self._lock = threading.Lock()

    def create_name(self) -> StreamName:
        """Create a new stream name with its own signing keypair."""
        name = StreamName.create()
        logger.debug("Created stream name %s", name.name_id)
        return name

    async def publish(
        self,
        name: StreamName,
        cid: str,
        previous_revision: Revision | None = None,
    ) -> Revision:
        """Publish *cid* as the next revision of *name*.

        The sequence is ``previous_revision.sequence + 1``, or ``0`` when no
        previous revision is given.

        Raises
        ------
        ValidationError
            If *cid* is malformed or *previous_revision* belongs to another name.
        NetworkError
            If the backend could not accept the revision.
        """
        validate_cid(cid)
        if previous_revision is not None and previous_revision.name_id != name.name_id:
            raise ValidationError(
                "Previous revision belongs to a different stream",
                {"expected": name.name_id, "got": previous_revision.name_id},
            )
        sequence = 0 if previous_revision is None else previous_revision.sequence + 1
        revision = Revision.create(name, sequence, cid)

        description = f"publish of {name.name_id} seq={sequence}"
        backend = self._backend
        try:
            await call_with_retry(
                lambda: backend.publish(revision),
                self._retry_policy,
                description,
                **self._sleep_kwargs(),
            )
        except BackendError as exc:
            raise NetworkError(description, exc.attempts, exc.message) from exc

        self._observe(revision)
        logger.info("Published %s seq=%d -> %s", name.name_id, sequence, cid)
        return revision

    async def resolve_revision(self, name_id: str) -> Revision | None:
        """Return the highest-sequence valid revision visible for *name_id*.

        Lookup failures are logged and fall back to the highest revision this
        resolver has already observed, or ``None``.

        Raises
        ------
        ValidationError
            If *name_id* is not a stream identifier.
        """
        validate_stream_id(name_id)
        backend = self._backend
        fetched: Revision | None = None
        try:
            fetched = await call_with_retry(
                lambda: backend.resolve(name_id),
                self._retry_policy,
                f"resolve of {name_id}",
                **self._sleep_kwargs(),
            )
        except (BackendError, NetworkError) as exc:
            logger.warning("Could not resolve %s: %s", name_id, exc)

        if fetched is not None:
            if fetched.name_id != name_id or not fetched.verify():
                logger.warning(
                    "Ignoring revision seq=%d for %s: signature does not match the stream key",
                    fetched.sequence,
                    name_id,
                )
            else:
                self._observe(fetched)

        with self._lock:
            return self._highest.get(name_id)

    async def resolve(self, name_id: str) -> str | None:
        """Return the CID *name_id* currently points to, or ``None``."""
        revision = await self.resolve_revision(name_id)
        return revision.points_to if revision is not None else None

    def _observe(self, revision: Revision) -> None:
        with self._lock:
            current = self._highest.get(revision.name_id)
            if current is None or revision.sequence > current.sequence:
                self._highest[revision.name_id] = revision

    def _sleep_kwargs(self) -> dict[str, Sleep]:
        return {"sleep": self._sleep} if self._sleep is not None else {}


__all__ = ["MutableStream"]
