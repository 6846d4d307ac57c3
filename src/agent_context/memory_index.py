"""MemoryIndex — which DID owns which stored memory.

A memory's owner is fixed when its CID is first registered; only delegations
issued by that owner can authorize reads of it.
"""
from __future__ import annotations

import datetime
import threading
from dataclasses import dataclass, field

from agent_context.content.cid import validate_cid
from agent_context.errors import ValidationError


@dataclass(frozen=True)
class MemoryRecord:
    """Index entry for one stored memory.

    Parameters
    ----------
    cid:
        Content identifier of the stored memory.
    owner_did:
        DID of the agent that stored it. Immutable.
    created_at:
        UTC datetime when the memory was first registered.
    """

    cid: str
    owner_did: str
    created_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "cid": self.cid,
            "owner_did": self.owner_did,
            "created_at": self.created_at.isoformat(),
        }


class MemoryIndex:
    """Thread-safe map of CID to :class:`MemoryRecord`.

    Example
    -------
    ::

        index = MemoryIndex()
        index.register(cid, owner_did=alice.did)
        print(index.get(cid).owner_did)
    """

    def __init__(self) -> None:
        self._records: dict[str, MemoryRecord] = {}
        self._lock = threading.Lock()

    def register(self, cid: str, owner_did: str) -> MemoryRecord:
        """Record *owner_did* as the owner of *cid*.

        Registering the same CID again for the same owner returns the
        existing record unchanged.

        Raises
        ------
        ValidationError
            If *cid* is malformed or already owned by a different DID.
        """
        validate_cid(cid)
        with self._lock:
            existing = self._records.get(cid)
            if existing is not None:
                if existing.owner_did != owner_did:
                    raise ValidationError(
                        f"Memory {cid} is already owned by another agent",
                        {"cid": cid, "owner_did": existing.owner_did},
                    )
                return existing
            record = MemoryRecord(cid=cid, owner_did=owner_did)
            self._records[cid] = record
            return record

    def get(self, cid: str) -> MemoryRecord | None:
        """Return the record for *cid*, or ``None`` when unknown."""
        with self._lock:
            return self._records.get(cid)

    def owned_by(self, owner_did: str) -> list[MemoryRecord]:
        """All records owned by *owner_did*, oldest first."""
        with self._lock:
            records = [r for r in self._records.values() if r.owner_did == owner_did]
        return sorted(records, key=lambda r: r.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, cid: object) -> bool:
        with self._lock:
            return cid in self._records


__all__ = ["MemoryIndex", "MemoryRecord"]
