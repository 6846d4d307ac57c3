"""Tests for agent_context.stream.revision — stream names and signed revisions."""
from __future__ import annotations

import json

import pytest

from agent_context.content.cid import compute_cid
from agent_context.errors import ValidationError
from agent_context.stream import STREAM_ID_PREFIX, Revision, StreamName, validate_stream_id
from agent_context.stream.revision import revision_payload

CID_1 = compute_cid(b"one")
CID_2 = compute_cid(b"two")


@pytest.fixture()
def name() -> StreamName:
    return StreamName.create()


class TestStreamName:
    def test_name_id_format(self, name: StreamName) -> None:
        assert name.name_id.startswith(STREAM_ID_PREFIX + "z6Mk")

    def test_name_id_embeds_public_key(self, name: StreamName) -> None:
        assert validate_stream_id(name.name_id) == name.public_key

    def test_names_are_unique(self) -> None:
        assert StreamName.create().name_id != StreamName.create().name_id

    def test_repr_hides_private_key(self, name: StreamName) -> None:
        assert "private_key" not in repr(name)

    @pytest.mark.parametrize("bad", ["", "z6Mkabc", "did:key:z6Mk", "stream:", "stream:abc"])
    def test_validate_stream_id_rejects_malformed(self, bad: str) -> None:
        with pytest.raises(ValidationError):
            validate_stream_id(bad)


class TestRevision:
    def test_create_and_verify(self, name: StreamName) -> None:
        revision = Revision.create(name, 0, CID_1)
        assert revision.sequence == 0
        assert revision.points_to == CID_1
        assert revision.name_id == name.name_id
        assert revision.verify() is True

    def test_payload_is_canonical(self) -> None:
        assert revision_payload(3, CID_1) == json.dumps(
            {"sequence": 3, "value": CID_1}, sort_keys=True, separators=(",", ":")
        ).encode("utf-8")

    def test_tampered_pointer_fails_verification(self, name: StreamName) -> None:
        revision = Revision.create(name, 0, CID_1)
        forged = Revision(revision.name_id, revision.sequence, CID_2, revision.signature)
        assert forged.verify() is False

    def test_tampered_sequence_fails_verification(self, name: StreamName) -> None:
        revision = Revision.create(name, 0, CID_1)
        forged = Revision(revision.name_id, 7, revision.points_to, revision.signature)
        assert forged.verify() is False

    def test_revision_signed_by_other_key_fails(self, name: StreamName) -> None:
        other = StreamName.create()
        revision = Revision.create(other, 0, CID_1)
        forged = Revision(name.name_id, 0, CID_1, revision.signature)
        assert forged.verify() is False

    def test_unparseable_name_fails_verification(self, name: StreamName) -> None:
        revision = Revision.create(name, 0, CID_1)
        assert Revision("garbage", 0, CID_1, revision.signature).verify() is False

    @pytest.mark.parametrize("sequence", [-1, True, 1.5])
    def test_create_rejects_bad_sequence(self, name: StreamName, sequence: object) -> None:
        with pytest.raises(ValidationError):
            Revision.create(name, sequence, CID_1)  # type: ignore[arg-type]

    def test_create_rejects_bad_cid(self, name: StreamName) -> None:
        with pytest.raises(ValidationError):
            Revision.create(name, 0, "not-a-cid")

    def test_bytes_round_trip(self, name: StreamName) -> None:
        revision = Revision.create(name, 4, CID_2)
        restored = Revision.from_bytes(revision.to_bytes())
        assert restored == revision
        assert restored.verify() is True

    def test_to_dict_fields(self, name: StreamName) -> None:
        data = Revision.create(name, 1, CID_1).to_dict()
        assert set(data) == {"name", "sequence", "value", "signature"}
        assert "=" not in str(data["signature"])

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[]",
            b'{"name": "stream:x"}',
            b'{"name": "stream:x", "sequence": "1", "value": "b", "signature": "AA"}',
            b'{"name": "stream:x", "sequence": -2, "value": "b", "signature": "AA"}',
            b'{"name": "stream:x", "sequence": 1, "value": "b", "signature": 5}',
        ],
    )
    def test_from_bytes_rejects_malformed(self, raw: bytes) -> None:
        with pytest.raises(ValidationError):
            Revision.from_bytes(raw)
