"""Name backends — where stream revisions are published and looked up.

Backends raise :class:`~agent_context.content.backend.BackendError` with the
same structured codes as content backends, so the same retry helper applies.
"""
from __future__ import annotations

import base64
import binascii
import threading
import urllib.parse
from abc import ABC, abstractmethod

import httpx

from agent_context.content.backend import (
    BackendError,
    BackendErrorCode,
    error_for_status,
    error_for_transport,
)
from agent_context.errors import ValidationError
from agent_context.stream.revision import Revision


class NameBackend(ABC):
    """Abstract mutable-name backend."""

    @abstractmethod
    async def publish(self, revision: Revision) -> None:
        """Make *revision* visible to resolvers."""

    @abstractmethod
    async def resolve(self, name_id: str) -> Revision | None:
        """Return the latest revision the backend holds for *name_id*."""


class InMemoryNameBackend(NameBackend):
    """Process-local name backend.

    Keeps every published revision and answers lookups with the one carrying
    the highest sequence number.
    """

    def __init__(self) -> None:
        self._revisions: dict[str, list[Revision]] = {}
        self._lock = threading.Lock()

    async def publish(self, revision: Revision) -> None:
        with self._lock:
            self._revisions.setdefault(revision.name_id, []).append(revision)

    async def resolve(self, name_id: str) -> Revision | None:
        with self._lock:
            revisions = self._revisions.get(name_id)
            if not revisions:
                return None
            return max(revisions, key=lambda r: r.sequence)

    def history(self, name_id: str) -> list[Revision]:
        """All revisions published under *name_id*, in publication order."""
        with self._lock:
            return list(self._revisions.get(name_id, []))


class HttpNameBackend(NameBackend):
    """HTTP name service client over :class:`httpx.AsyncClient`.

    Records are exchanged as ``{"record": base64url(revision bytes)}`` on
    ``/name/<id>``: ``POST`` publishes, ``GET`` resolves, and a 404 means the
    name has never been published.

    Parameters
    ----------
    base_url:
        Base URL of the name service.
    api_token:
        Optional bearer token sent with publishes.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional :class:`httpx.AsyncBaseTransport`, mainly for tests.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got: {base_url!r}")
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    async def publish(self, revision: Revision) -> None:
        operation = f"publish of {revision.name_id} seq={revision.sequence}"
        record = base64.urlsafe_b64encode(revision.to_bytes()).decode("ascii")
        headers = {"Authorization": f"Bearer {self._api_token}"} if self._api_token else {}
        try:
            async with self._client() as client:
                response = await client.post(
                    self._name_url(revision.name_id),
                    json={"record": record},
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise error_for_transport(exc, operation) from exc
        if response.status_code >= 400:
            raise error_for_status(response, operation)

    async def resolve(self, name_id: str) -> Revision | None:
        operation = f"resolve of {name_id}"
        try:
            async with self._client() as client:
                response = await client.get(self._name_url(name_id))
        except httpx.HTTPError as exc:
            raise error_for_transport(exc, operation) from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise error_for_status(response, operation)
        try:
            record = str(response.json()["record"])
            raw = base64.urlsafe_b64decode(record + "=" * (-len(record) % 4))
            return Revision.from_bytes(raw)
        except (ValueError, KeyError, TypeError, binascii.Error, ValidationError) as exc:
            raise BackendError(
                BackendErrorCode.PERMANENT,
                f"{operation} returned an unreadable record: {exc}",
            ) from exc

    def _name_url(self, name_id: str) -> str:
        return f"{self._base_url}/name/{urllib.parse.quote(name_id, safe='')}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)


__all__ = ["HttpNameBackend", "InMemoryNameBackend", "NameBackend"]
