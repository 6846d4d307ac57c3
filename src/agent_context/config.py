"""Settings — network endpoints and retry tuning for agent-context.

All fields have working defaults: with nothing configured, uploads run in
simulated mode and streams use an in-memory name backend. Values can be
supplied directly or read from ``AGENT_CONTEXT_*`` environment variables via
:meth:`Settings.from_env`.

Environment variables
---------------------
``AGENT_CONTEXT_UPLOAD_URL``         IPFS HTTP RPC base URL for uploads
``AGENT_CONTEXT_GATEWAY_URL``        path-gateway base URL for reads
``AGENT_CONTEXT_NAME_SERVICE_URL``   name service base URL for streams
``AGENT_CONTEXT_API_TOKEN``          bearer token for uploads and publishes
``AGENT_CONTEXT_MAX_ATTEMPTS``       retry attempts per backend call
``AGENT_CONTEXT_BASE_DELAY``         linear backoff step in seconds
``AGENT_CONTEXT_REQUEST_TIMEOUT``    per-request timeout in seconds
``AGENT_CONTEXT_SIMULATE_ON_FAILURE`` ``true``/``false``
"""
from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from agent_context.content.backend import DEFAULT_GATEWAY_URL, HttpContentBackend
from agent_context.content.retry import RetryPolicy
from agent_context.content.store import ContentStore
from agent_context.stream.backend import HttpNameBackend, InMemoryNameBackend, NameBackend
from agent_context.stream.stream import MutableStream

ENV_PREFIX = "AGENT_CONTEXT_"


class Settings(BaseModel):
    """Configuration for the content store and stream services.

    Parameters
    ----------
    upload_url:
        IPFS HTTP RPC endpoint. Without it (or without ``api_token``) every
        upload is simulated.
    gateway_url:
        Gateway used for reads and for printable gateway URLs.
    name_service_url:
        Name service endpoint. ``None`` means streams are process-local.
    api_token:
        Bearer token for uploads and publishes.
    max_attempts:
        Attempts per backend call, including the first.
    base_delay:
        Backoff step in seconds; attempt ``n`` waits ``n * base_delay``.
    request_timeout:
        Timeout for each individual HTTP request.
    simulate_on_failure:
        Fall back to simulated storage when uploads exhaust their retries.
    """

    upload_url: Optional[str] = None
    gateway_url: str = DEFAULT_GATEWAY_URL
    name_service_url: Optional[str] = None
    api_token: Optional[str] = Field(default=None, repr=False)
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.5, ge=0.0)
    request_timeout: float = Field(default=30.0, gt=0.0)
    simulate_on_failure: bool = True

    @field_validator("upload_url", "gateway_url", "name_service_url")
    @classmethod
    def _check_url(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is None or value == "":
            return DEFAULT_GATEWAY_URL if info.field_name == "gateway_url" else None
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got: {value!r}")
        return value.rstrip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``AGENT_CONTEXT_*`` variables in *environ*.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, base_delay=self.base_delay)

    def build_store(self) -> ContentStore:
        """Content store reading through the gateway.

        Uploads go to ``upload_url`` when it and ``api_token`` are set; otherwise
        the backend reports itself unauthenticated and uploads are simulated.
        """
        backend = HttpContentBackend(
            upload_url=self.upload_url,
            gateway_url=self.gateway_url,
            api_token=self.api_token,
            timeout=self.request_timeout,
        )
        return ContentStore(
            backend=backend,
            retry_policy=self.retry_policy(),
            simulate_on_failure=self.simulate_on_failure,
            gateway_base_url=self.gateway_url,
        )

    def build_streams(self) -> MutableStream:
        """Stream service backed by HTTP when ``name_service_url`` is set."""
        backend: NameBackend
        if self.name_service_url is not None:
            backend = HttpNameBackend(
                base_url=self.name_service_url,
                api_token=self.api_token,
                timeout=self.request_timeout,
            )
        else:
            backend = InMemoryNameBackend()
        return MutableStream(backend=backend, retry_policy=self.retry_policy())


__all__ = ["ENV_PREFIX", "Settings"]
