import pytest

from vireax.field.operators import (
    CentroidOperator,
    HierarchyOperator,
    OpContext,
    OperatorPipeline,
)
from vireax.field.packets import PacketKind, create_packet
from vireax.field.store import InMemoryPacketStore


def _obs(t, xy, tags=("observation",), **kw):
    return create_packet(t=t, kind="observation", embedding=xy, tags=list(tags), **kw)


def test_centroid_requires_four_grounded_points():
    store = InMemoryPacketStore()
    op = CentroidOperator()
    for i in range(3):
        store.put(_obs(float(i), (0.1 * i, 0.0)))
    assert not op.applicable(store, OpContext())

    store.put(_obs(3.0, (0.3, 0.0)))
    assert op.applicable(store, OpContext())


def test_centroid_ignores_quarantine_and_unembedded_packets():
    store = InMemoryPacketStore()
    for i in range(3):
        store.put(_obs(float(i), (0.0, 0.0)))
    for i in range(3):
        store.put(_obs(10.0 + i, (0.9, 0.9), tags=("observation", "quarantine")))
    store.put(create_packet(t=20.0, kind="observation", tags=["observation"]))

    assert not CentroidOperator().applicable(store, OpContext())


def test_centroid_summary_of_unit_square():
    store = InMemoryPacketStore()
    corners = [(0.0, 0.0), (0.0, 0.2), (0.2, 0.0), (0.2, 0.2)]
    ids = [store.put(_obs(float(i), xy, confidence=1.0)) for i, xy in enumerate(corners)]

    result = CentroidOperator().run(store, OpContext(step=4))
    assert len(result.produced) == 1
    summary = result.produced[0]

    assert summary.kind is PacketKind.SUMMARY
    assert summary.embedding == pytest.approx((0.1, 0.1))
    assert summary.payload["type"] == "centroid_summary"
    assert summary.payload["count"] == 4
    assert summary.payload["dispersion"] == pytest.approx(0.02)
    assert set(summary.parents) == set(ids)
    assert set(result.consumed) == set(ids)
    assert summary.tags == ("memory", "summary")
    assert summary.operator == "centroid.compress"
    assert summary.meta == {"step": 4}
    assert 0.1 <= summary.confidence <= 1.0


def test_centroid_five_point_scenario():
    store = InMemoryPacketStore()
    points = [(0.0, 0.0), (0.0, 0.0), (1.0, 1.0), (1.0, 1.0), (0.5, 0.5)]
    for i, xy in enumerate(points):
        store.put(_obs(float(i), xy))

    summary = CentroidOperator().run(store, OpContext()).produced[0]
    assert summary.embedding == pytest.approx((0.5, 0.5))
    assert len(summary.parents) == 5
    assert summary.payload["dispersion"] == pytest.approx(0.4)


def test_hierarchy_only_applies_during_ignition():
    store = InMemoryPacketStore()
    for i in range(12):
        store.put(create_packet(t=float(i), kind="summary", embedding=(i / 12, 0.5), tags=["summary"]))
    op = HierarchyOperator()

    assert not op.applicable(store, OpContext(ignition=False))
    assert op.applicable(store, OpContext(ignition=True))


def test_hierarchy_needs_enough_summaries():
    store = InMemoryPacketStore()
    for i in range(9):
        store.put(create_packet(t=float(i), kind="summary", embedding=(0.5, 0.5)))
    assert not HierarchyOperator().applicable(store, OpContext(ignition=True))


def test_hierarchy_chunks_summaries_into_macros():
    store = InMemoryPacketStore()
    ids = [
        store.put(create_packet(t=float(i), kind="summary", embedding=(i / 12, 0.5), tags=["summary"]))
        for i in range(12)
    ]

    result = HierarchyOperator().run(store, OpContext(step=9, ignition=True))
    assert len(result.produced) == 6
    for macro in result.produced:
        assert macro.kind is PacketKind.SUMMARY
        assert len(macro.parents) == 2
        assert macro.confidence == pytest.approx(0.7)
        assert {"macro", "map", "do_not_prune_micro", "summary"} <= set(macro.tags)
    assert {pid for m in result.produced for pid in m.parents} == set(ids)
    assert "6 macro-centroids from 12 summaries" in result.notes[0]


def test_pipeline_commits_produced_packets_and_keeps_consumed():
    store = InMemoryPacketStore()
    ids = [store.put(_obs(float(i), (0.1 * i, 0.1))) for i in range(4)]
    pipeline = OperatorPipeline(store)

    assert [op.name for op in pipeline.eligible(OpContext())] == ["centroid.compress"]
    results = pipeline.run_eligible(OpContext(step=1))

    assert len(results) == 1
    assert store.size() == 5
    summary = results[0].produced[0]
    assert store.get(summary.id) == summary
    assert all(store.get(pid) is not None for pid in ids)
    assert store.verify_indexes() == []


def test_pipeline_with_no_eligible_operator_is_noop():
    store = InMemoryPacketStore()
    store.put(_obs(1.0, (0.0, 0.0)))
    assert OperatorPipeline(store).run_eligible(OpContext()) == []
    assert store.size() == 1
