import pytest

from vireax.field.packets import create_packet
from vireax.field.store import InMemoryPacketStore, LineageError, MissingParentError


def _pkt(t, kind="observation", tags=("observation",), **kw):
    return create_packet(t=t, kind=kind, tags=list(tags), **kw)


def test_put_get_roundtrip_and_duplicate_is_noop():
    store = InMemoryPacketStore()
    pkt = _pkt(1.0, embedding=(0.1, 0.2))

    assert store.put(pkt) == pkt.id
    assert store.get(pkt.id) == pkt
    assert store.size() == 1

    assert store.put(pkt) == pkt.id
    assert store.size() == 1
    assert len(store.timeline()) == 1
    assert store.ids_for_tag("observation") == {pkt.id}


def test_get_unknown_id_returns_none():
    assert InMemoryPacketStore().get("missing") is None


def test_get_latest_is_most_recent_first_and_bounded():
    store = InMemoryPacketStore()
    for t in (3.0, 1.0, 5.0, 2.0, 4.0):
        store.put(_pkt(t))

    latest = store.get_latest(3)
    assert [p.t for p in latest] == [5.0, 4.0, 3.0]
    assert len(store.get_latest(50)) == 5
    assert store.get_latest(0) == []

    ts = [p.t for p in store.get_latest(10)]
    assert ts == sorted(ts, reverse=True)


def test_equal_timestamps_keep_insertion_order():
    store = InMemoryPacketStore()
    first = store.put(_pkt(1.0))
    second = store.put(_pkt(1.0))
    third = store.put(_pkt(1.0))

    assert [pid for _, _, pid in store.timeline()] == [first, second, third]
    assert [p.id for p in store.get_latest(3)] == [third, second, first]


def test_missing_parent_is_rejected_without_side_effects():
    store = InMemoryPacketStore()
    orphan = _pkt(1.0, parents=["nope"])

    with pytest.raises(MissingParentError) as excinfo:
        store.put(orphan)

    assert excinfo.value.missing == ["nope"]
    assert store.size() == 0
    assert store.ids_for_tag("observation") == frozenset()


def test_self_parent_is_rejected():
    pkt = create_packet(id="abc", parents=["abc"])
    with pytest.raises(LineageError):
        InMemoryPacketStore().put(pkt)


def test_lineage_walks_ancestors_breadth_first():
    store = InMemoryPacketStore()
    a = store.put(_pkt(1.0))
    b = store.put(_pkt(2.0))
    s1 = store.put(_pkt(3.0, kind="summary", tags=("summary",), parents=[a, b]))
    macro = store.put(_pkt(4.0, kind="summary", tags=("macro",), parents=[s1]))

    assert [p.id for p in store.lineage(macro)] == [s1, a, b]
    assert store.lineage("unknown") == []


def test_indexes_are_reconstructible_from_packet_map():
    store = InMemoryPacketStore()
    root = store.put(_pkt(2.0, tags=("a", "b")))
    store.put(_pkt(1.0, tags=("b",)))
    store.put(_pkt(2.0, tags=("c",), parents=[root]))
    store.put(_pkt(0.5, kind="goal", tags=()))

    assert store.verify_indexes() == []
    assert store.ids_for_tag("b") == frozenset(p.id for p in store if "b" in p.tags)


def test_verify_indexes_reports_drift():
    store = InMemoryPacketStore()
    pkt = _pkt(1.0, tags=("a",))
    store.put(pkt)
    store._tag_index["a"].discard(pkt.id)  # simulate corruption

    problems = store.verify_indexes()
    assert problems
    assert "tag index mismatch for 'a'" in problems


def test_ids_for_tag_returns_a_snapshot():
    store = InMemoryPacketStore()
    store.put(_pkt(1.0, tags=("x",)))
    snapshot = store.ids_for_tag("x")
    store.put(_pkt(2.0, tags=("x",)))
    assert len(snapshot) == 1
    assert len(store.ids_for_tag("x")) == 2
