import pytest
from pydantic import ValidationError

from vireax.field.packets import (
    InfoPacket,
    PacketKind,
    create_packet,
    is_custom_kind,
    normalize_kind,
)
from vireax.field.store import InMemoryPacketStore


def test_create_packet_applies_defaults():
    pkt = create_packet()
    assert len(pkt.id) == 32
    assert pkt.t > 0
    assert pkt.kind == "fact"
    assert pkt.payload is None
    assert pkt.embedding is None
    assert pkt.tags == ()
    assert pkt.confidence == 1.0
    assert pkt.parents == ()
    assert pkt.operator is None
    assert pkt.meta == {}


def test_ids_are_unique():
    ids = {create_packet().id for _ in range(200)}
    assert len(ids) == 200


def test_known_kind_becomes_enum_and_custom_kind_is_kept():
    known = create_packet(kind="summary")
    custom = create_packet(kind="vireax_anchor")

    assert known.kind is PacketKind.SUMMARY
    assert known.kind_name == "summary"
    assert custom.kind == "vireax_anchor"
    assert is_custom_kind(custom.kind)
    assert not is_custom_kind(known.kind)
    assert normalize_kind("self_model") is PacketKind.SELF_MODEL


def test_packet_is_frozen():
    pkt = create_packet(kind="observation")
    with pytest.raises(ValidationError):
        pkt.confidence = 0.1  # type: ignore[misc]


def test_tags_are_deduplicated_in_order():
    pkt = create_packet(tags=["sensor", "observation", "sensor", "periodic"])
    assert pkt.tags == ("sensor", "observation", "periodic")
    assert pkt.has_tag("periodic")
    assert not pkt.has_tag("quarantine")


def test_embedding_must_be_two_dimensional():
    assert create_packet(embedding=[0.25, 0.75]).embedding == (0.25, 0.75)
    with pytest.raises(ValidationError):
        create_packet(embedding=[0.1, 0.2, 0.3])


@pytest.mark.parametrize("confidence", [-0.1, 1.5])
def test_confidence_bounds(confidence):
    with pytest.raises(ValidationError):
        InfoPacket(confidence=confidence)


def test_projection_only_exposes_kind_tags_payload():
    pkt = create_packet(kind="observation", tags=["a"], payload={"x": 1}, confidence=0.3, meta={"step": 2})
    assert pkt.projection() == {"kind": "observation", "tags": ["a"], "payload": {"x": 1}}


def test_stored_meta_and_payload_are_read_only():
    store = InMemoryPacketStore()
    source_meta = {"step": 1}
    source_payload = {"x": 1, "history": [1, 2]}
    pid = store.put(create_packet(meta=source_meta, payload=source_payload))

    stored = store.get(pid)
    with pytest.raises(TypeError):
        stored.meta["step"] = 999  # type: ignore[index]
    with pytest.raises(TypeError):
        stored.payload["x"] = 2
    with pytest.raises(AttributeError):
        stored.payload["history"].append(3)

    source_meta["step"] = 5
    source_payload["x"] = 7
    assert store.get(pid).meta == {"step": 1}
    assert store.get(pid).payload["x"] == 1


def test_frozen_containers_serialise_as_plain_json():
    pkt = create_packet(payload={"nested": {"values": [1, 2]}}, meta={"step": 3})
    dumped = pkt.model_dump(mode="json")

    assert dumped["payload"] == {"nested": {"values": [1, 2]}}
    assert dumped["meta"] == {"step": 3}
    assert pkt.projection()["payload"] == {"nested": {"values": [1, 2]}}


@pytest.mark.parametrize("t", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_timestamp_is_rejected(t):
    with pytest.raises(ValidationError):
        create_packet(t=t)


@pytest.mark.parametrize("embedding", [(float("nan"), 0.5), (0.5, float("inf"))])
def test_non_finite_embedding_is_rejected(embedding):
    with pytest.raises(ValidationError):
        create_packet(embedding=embedding)
