"""Content backends — where :class:`~agent_context.content.store.ContentStore` puts bytes.

A backend exposes two coroutines, ``put`` and ``get``. Failures are raised as
:class:`BackendError` with a structured :class:`BackendErrorCode` so the store
can decide between retrying, falling back, and giving up without inspecting
error text.

Two backends ship with the package:

InMemoryContentBackend
    Process-local dictionary keyed by real CIDv1 values.
HttpContentBackend
    IPFS HTTP RPC upload (``POST /api/v0/add``) plus path-gateway fetch
    (``GET /ipfs/<cid>/<filename>``) over :mod:`httpx`.
"""
from __future__ import annotations

import json
import logging
import threading
import urllib.parse
from abc import ABC, abstractmethod
from enum import Enum

import httpx

from agent_context.content.cid import compute_cid

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "https://storacha.link"


class BackendErrorCode(str, Enum):
    """Structured failure classes reported by backends."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNAUTHENTICATED = "unauthenticated"


class BackendError(Exception):
    """A single failed backend call.

    Parameters
    ----------
    code:
        Failure class; only ``TRANSIENT`` failures are retried.
    message:
        Description of the underlying failure.
    status_code:
        HTTP status when the failure came from a response, else ``None``.
    """

    def __init__(self, code: BackendErrorCode, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.attempts = 1

    @property
    def retryable(self) -> bool:
        return self.code == BackendErrorCode.TRANSIENT


def error_for_status(response: httpx.Response, operation: str) -> BackendError:
    """Map a non-success HTTP response to a :class:`BackendError`."""
    status = response.status_code
    message = f"{operation} returned HTTP {status}"
    if status in (401, 403):
        return BackendError(BackendErrorCode.UNAUTHENTICATED, message, status)
    if status in (408, 425, 429) or status >= 500:
        return BackendError(BackendErrorCode.TRANSIENT, message, status)
    return BackendError(BackendErrorCode.PERMANENT, message, status)


def error_for_transport(exc: httpx.HTTPError, operation: str) -> BackendError:
    """Map an httpx transport failure (connect, read, timeout) to a transient error."""
    return BackendError(
        BackendErrorCode.TRANSIENT,
        f"{operation} failed: {type(exc).__name__}: {exc}",
    )


class ContentBackend(ABC):
    """Abstract content-addressed upload/fetch backend."""

    @abstractmethod
    async def put(self, data: bytes, filename: str, mime_type: str) -> str:
        """Store *data* and return its CID."""

    @abstractmethod
    async def get(self, cid: str, filename: str) -> bytes | None:
        """Return the bytes stored under *cid*, or ``None`` when not found."""


class InMemoryContentBackend(ContentBackend):
    """Thread-safe, process-local content backend.

    Addresses are real CIDv1 values computed from the bytes, so identical
    payloads always map to the same address.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    async def put(self, data: bytes, filename: str, mime_type: str) -> str:
        cid = compute_cid(data)
        with self._lock:
            self._blobs[cid] = bytes(data)
        return cid

    async def get(self, cid: str, filename: str) -> bytes | None:
        with self._lock:
            return self._blobs.get(cid)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class HttpContentBackend(ContentBackend):
    """IPFS HTTP backend built on :class:`httpx.AsyncClient`.

    A client is opened per call and closed when the call returns.

    Parameters
    ----------
    upload_url:
        Base URL of an IPFS HTTP RPC endpoint (e.g. a pinning service).
    gateway_url:
        Base URL of a path-style IPFS gateway used for reads.
    api_token:
        Bearer token for uploads. Without one, :meth:`put` fails with
        ``UNAUTHENTICATED`` and no request is made.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional :class:`httpx.AsyncBaseTransport`, mainly for tests.
    """

    def __init__(
        self,
        upload_url: str | None = None,
        gateway_url: str = DEFAULT_GATEWAY_URL,
        api_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        for url in (upload_url, gateway_url):
            if url is not None and not url.startswith(("http://", "https://")):
                raise ValueError(f"URL must start with http:// or https://, got: {url!r}")
        self._upload_url = upload_url.rstrip("/") if upload_url else None
        self._gateway_url = gateway_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    def gateway_url(self, cid: str) -> str:
        """Return the public gateway URL for *cid*."""
        return f"{self._gateway_url}/ipfs/{cid}"

    async def put(self, data: bytes, filename: str, mime_type: str) -> str:
        if not self._upload_url or not self._api_token:
            raise BackendError(
                BackendErrorCode.UNAUTHENTICATED,
                "no authenticated space configured for uploads",
            )
        operation = f"upload of {filename!r}"
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._upload_url}/api/v0/add",
                    params={"cid-version": "1", "wrap-with-directory": "true", "pin": "true"},
                    files={"file": (filename, data, mime_type)},
                    headers={"Authorization": f"Bearer {self._api_token}"},
                )
        except httpx.HTTPError as exc:
            raise error_for_transport(exc, operation) from exc
        if response.status_code >= 400:
            raise error_for_status(response, operation)
        cid = _directory_cid(response.text, operation)
        logger.debug("IPFS add of %r (%d bytes) returned %s", filename, len(data), cid)
        return cid

    async def get(self, cid: str, filename: str) -> bytes | None:
        operation = f"fetch of {cid}/{filename}"
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.gateway_url(cid)}/{urllib.parse.quote(filename, safe='')}"
                )
        except httpx.HTTPError as exc:
            raise error_for_transport(exc, operation) from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise error_for_status(response, operation)
        return response.content

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)


def _directory_cid(body: str, operation: str) -> str:
    """Extract the wrapping directory's CID from an ``/api/v0/add`` NDJSON body.

    The wrapping directory is the entry with an empty ``Name``; when the
    server omits it, the last entry is used.
    """
    entries: list[dict[str, object]] = []
    for line in body.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as exc:
            raise BackendError(
                BackendErrorCode.PERMANENT,
                f"{operation} returned an unparseable body: {exc}",
            ) from exc
        if not isinstance(entry, dict):
            raise BackendError(
                BackendErrorCode.PERMANENT,
                f"{operation} returned a non-object entry: {line[:80]!r}",
            )
        entries.append(entry)
    for entry in entries:
        if entry.get("Name") == "" and entry.get("Hash"):
            return str(entry["Hash"])
    if entries and entries[-1].get("Hash"):
        return str(entries[-1]["Hash"])
    raise BackendError(BackendErrorCode.PERMANENT, f"{operation} returned no CID")


__all__ = [
    "BackendError",
    "BackendErrorCode",
    "ContentBackend",
    "DEFAULT_GATEWAY_URL",
    "HttpContentBackend",
    "InMemoryContentBackend",
    "error_for_status",
    "error_for_transport",
]
