"""Mutable streams: stable names over immutable content addresses."""
from __future__ import annotations

from agent_context.stream.backend import HttpNameBackend, InMemoryNameBackend, NameBackend
from agent_context.stream.revision import (
    STREAM_ID_PREFIX,
    Revision,
    StreamName,
    validate_stream_id,
)
from agent_context.stream.stream import MutableStream

__all__ = [
    "HttpNameBackend",
    "InMemoryNameBackend",
    "MutableStream",
    "NameBackend",
    "Revision",
    "STREAM_ID_PREFIX",
    "StreamName",
    "validate_stream_id",
]
