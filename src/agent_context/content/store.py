"""ContentStore — upload and fetch opaque blobs by content identifier.

Upload path
-----------
1. Validate the filename.
2. If no backend is configured, simulate immediately.
3. Otherwise call the backend under :func:`~agent_context.content.retry.call_with_retry`.
   - ``UNAUTHENTICATED``: no retry, fall back to simulation.
   - ``PERMANENT``: raise :class:`~agent_context.errors.NetworkError`.
   - transient failures exhausted: simulate when ``simulate_on_failure`` is
     set, otherwise raise :class:`~agent_context.errors.NetworkError`.

Simulated uploads are kept in a map owned by this instance and guarded by a
lock, keyed by :func:`~agent_context.content.cid.simulated_cid`. Fetching a
simulated CID is always served from that map, never from the network.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any

from agent_context.content.backend import (
    DEFAULT_GATEWAY_URL,
    BackendError,
    BackendErrorCode,
    ContentBackend,
)
from agent_context.content.cid import (
    is_simulated_cid,
    simulated_cid,
    validate_cid,
    validate_filename,
)
from agent_context.content.retry import RetryPolicy, Sleep, call_with_retry
from agent_context.errors import NetworkError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
JSON_MIME_TYPE = "application/json"


class ContentStore:
    """Content-addressed blob store with retry and a local simulation fallback.

    Parameters
    ----------
    backend:
        Network backend, or ``None`` to run fully simulated.
    retry_policy:
        Attempt limit and backoff for backend calls.
    simulate_on_failure:
        Fall back to simulation when transient failures exhaust the retry
        budget during upload. Unauthenticated backends always fall back.
    gateway_base_url:
        Base URL used by :meth:`gateway_url`.
    sleep:
        Awaitable sleep used between attempts; injectable for tests.

    Example
    -------
    ::

        store = ContentStore()
        cid = await store.upload(b"hello", "hello.txt", "text/plain")
        assert await store.fetch(cid, "hello.txt") == b"hello"
    """

    def __init__(
        self,
        backend: ContentBackend | None = None,
        retry_policy: RetryPolicy | None = None,
        simulate_on_failure: bool = True,
        gateway_base_url: str = DEFAULT_GATEWAY_URL,
        sleep: Sleep | None = None,
    ) -> None:
        self._backend = backend
        self._retry_policy = retry_policy or RetryPolicy()
        self._simulate_on_failure = simulate_on_failure
        self._gateway_base_url = gateway_base_url.rstrip("/")
        self._sleep = sleep
        self._simulated: dict[str, bytes] = {}
        self._lock = threading.Lock()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def simulated_count(self) -> int:
        """Number of blobs currently held in the simulated map."""
        with self._lock:
            return len(self._simulated)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(self, data: bytes, filename: str, mime_type: str = DEFAULT_MIME_TYPE) -> str:
        """Upload *data* and return its CID.

        Identical bytes always yield the identical CID.

        Raises
        ------
        ValidationError
            If *filename* is not a single safe path segment.
        NetworkError
            On a permanent backend failure, or on exhausted transient
            failures when ``simulate_on_failure`` is disabled.
        """
        validate_filename(filename)
        payload = bytes(data)
        if self._backend is None:
            return self._simulate(payload, filename, "no content backend configured")

        backend = self._backend
        try:
            cid = await call_with_retry(
                lambda: backend.put(payload, filename, mime_type),
                self._retry_policy,
                f"upload of {filename!r}",
                **self._sleep_kwargs(),
            )
        except BackendError as exc:
            if exc.code == BackendErrorCode.UNAUTHENTICATED:
                return self._simulate(payload, filename, exc.message)
            raise NetworkError(f"upload of {filename!r}", exc.attempts, exc.message) from exc
        except NetworkError as exc:
            if self._simulate_on_failure:
                return self._simulate(payload, filename, exc.last_error)
            raise
        logger.info("Uploaded %r (%d bytes) as %s", filename, len(payload), cid)
        return cid

    async def upload_json(self, obj: Any, filename: str = "data.json") -> str:
        """Upload *obj* as canonical JSON and return its CID."""
        return await self.upload(canonical_json(obj), filename, JSON_MIME_TYPE)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch(self, cid: str, filename: str) -> bytes | None:
        """Return the bytes stored under *cid*, or ``None`` when not found.

        Raises
        ------
        ValidationError
            If *cid* or *filename* is malformed.
        NetworkError
            When the backend keeps failing, or fails permanently with
            anything other than not-found.
        """
        validate_cid(cid)
        validate_filename(filename)
        if is_simulated_cid(cid):
            with self._lock:
                return self._simulated.get(cid)
        if self._backend is None:
            logger.debug("No content backend configured; %s is not resolvable", cid)
            return None

        backend = self._backend
        try:
            return await call_with_retry(
                lambda: backend.get(cid, filename),
                self._retry_policy,
                f"fetch of {cid}/{filename}",
                **self._sleep_kwargs(),
            )
        except BackendError as exc:
            raise NetworkError(f"fetch of {cid}/{filename}", exc.attempts, exc.message) from exc

    async def fetch_json(self, cid: str, filename: str = "data.json") -> Any | None:
        """Fetch *cid* and decode it as JSON; ``None`` when not found.

        Raises
        ------
        ValidationError
            If the stored bytes are not valid UTF-8 JSON.
        """
        raw = await self.fetch(cid, filename)
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(f"Content at {cid} is not JSON: {exc}", {"cid": cid}) from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def gateway_url(self, cid: str) -> str:
        """Return the gateway URL for *cid* (not resolvable for simulated CIDs)."""
        return f"{self._gateway_base_url}/ipfs/{validate_cid(cid)}"

    def _simulate(self, payload: bytes, filename: str, reason: str) -> str:
        cid = simulated_cid(payload)
        with self._lock:
            self._simulated.setdefault(cid, payload)
        logger.warning(
            "Storing %r (%d bytes) in simulated storage as %s: %s",
            filename,
            len(payload),
            cid,
            reason,
        )
        return cid

    def _sleep_kwargs(self) -> dict[str, Sleep]:
        return {"sleep": self._sleep} if self._sleep is not None else {}


def canonical_json(obj: Any) -> bytes:
    """Compact, sorted-key UTF-8 JSON encoding of *obj*."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


__all__ = [
    "ContentStore",
    "DEFAULT_MIME_TYPE",
    "JSON_MIME_TYPE",
    "canonical_json",
]
