import math

import pytest

from vireax.field.metrics import (
    HealthWeights,
    MetricsEngine,
    composite_health,
    sigmoid,
)
from vireax.field.packets import create_packet
from vireax.field.store import InMemoryPacketStore


def _obs(t, xy, **kw):
    return create_packet(t=t, kind="observation", embedding=xy, tags=["observation"], **kw)


def _summary(t, xy, **kw):
    return create_packet(t=t, kind="summary", embedding=xy, tags=["summary"], **kw)


def test_innovation_error_without_reference_is_zero():
    store = InMemoryPacketStore()
    obs = _obs(1.0, (0.3, 0.4))
    store.put(obs)
    assert MetricsEngine(store).innovation_error(obs) == 0.0


def test_innovation_error_is_distance_to_latest_summary():
    store = InMemoryPacketStore()
    store.put(_summary(1.0, (5.0, 5.0)))
    store.put(_summary(2.0, (0.0, 0.0)))
    obs = _obs(3.0, (3.0, 4.0))
    store.put(obs)

    assert MetricsEngine(store).innovation_error(obs) == pytest.approx(5.0)


def test_innovation_error_follows_configured_reference_kind():
    store = InMemoryPacketStore()
    store.put(_summary(1.0, (0.0, 0.0)))
    store.put(create_packet(t=2.0, kind="belief", embedding=(3.0, 0.0)))
    obs = _obs(3.0, (3.0, 4.0))
    store.put(obs)

    assert MetricsEngine(store, reference_kind="belief").innovation_error(obs) == pytest.approx(4.0)


def test_diversity_defaults_to_one():
    store = InMemoryPacketStore()
    engine = MetricsEngine(store)
    assert engine.diversity() == 1.0

    store.put(_obs(1.0, (0.1, 0.1)))
    assert engine.diversity() == 1.0


def test_diversity_counts_effective_clusters():
    store = InMemoryPacketStore()
    store.put(_summary(1.0, (0.0, 0.0)))
    store.put(_summary(2.0, (1.0, 1.0)))
    for i, xy in enumerate([(0.0, 0.1), (0.1, 0.0), (1.0, 0.9), (0.9, 1.0)]):
        store.put(_obs(3.0 + i, xy))

    assert MetricsEngine(store).diversity() == pytest.approx(2.0)


def test_diversity_single_cluster_is_one():
    store = InMemoryPacketStore()
    store.put(_summary(1.0, (0.0, 0.0)))
    store.put(_summary(2.0, (1.0, 1.0)))
    for i in range(5):
        store.put(_obs(3.0 + i, (0.05 * i, 0.0)))

    assert MetricsEngine(store).diversity() == pytest.approx(1.0)


def test_recursion_dominance_share_of_internal_kinds():
    store = InMemoryPacketStore()
    engine = MetricsEngine(store)
    assert engine.recursion_dominance() == 0.0

    store.put(_obs(1.0, (0.0, 0.0)))
    store.put(_obs(2.0, (0.0, 0.0)))
    store.put(_summary(3.0, (0.0, 0.0)))
    store.put(create_packet(t=4.0, kind="self_model", tags=["anchor"]))

    assert engine.recursion_dominance() == pytest.approx(0.5)
    assert engine.recursion_dominance(window=2) == pytest.approx(1.0)


def test_volatility_is_mean_step_between_recent_observations():
    store = InMemoryPacketStore()
    engine = MetricsEngine(store)
    store.put(_obs(1.0, (0.0, 0.0)))
    assert engine.volatility() == 0.0

    store.put(_obs(2.0, (0.0, 1.0)))
    store.put(_obs(3.0, (0.0, 3.0)))
    assert engine.volatility() == pytest.approx(1.5)


def test_sigmoid_is_stable_at_extremes():
    assert sigmoid(0.0) == 0.5
    assert sigmoid(1000.0) == pytest.approx(1.0)
    assert sigmoid(-1000.0) >= 0.0


def test_composite_health_bounds():
    w = HealthWeights()
    assert composite_health(0.0, w.n0, 0.0, 0.0, w) == pytest.approx(0.5)
    assert 0.0 < composite_health(1e6, 0.0, 10.0, 1.0, w) <= 1.0
    assert composite_health(0.0, 100.0, 0.0, 0.0, w) == pytest.approx(1.0)


def test_composite_health_matches_closed_form():
    w = HealthWeights()
    eps, n_eff, s_t, r_t = 0.2, 2.0, 0.07, 0.25
    expected = (
        math.exp(-w.alpha * eps)
        * sigmoid(w.beta * (n_eff - w.n0))
        * math.exp(-w.gamma * s_t)
        * math.exp(-w.delta * r_t)
    )
    assert composite_health(eps, n_eff, s_t, r_t, w) == pytest.approx(expected)


def test_zero_delta_disables_recursion_penalty():
    w = HealthWeights(delta=0.0)
    assert composite_health(0.1, 2.0, 0.05, 0.0, w) == pytest.approx(composite_health(0.1, 2.0, 0.05, 1.0, w))


def test_snapshot_populates_every_gauge():
    store = InMemoryPacketStore()
    store.put(_summary(1.0, (0.0, 0.0)))
    store.put(_obs(2.0, (0.0, 1.0)))
    obs = _obs(3.0, (3.0, 4.0))
    store.put(obs)

    snap = MetricsEngine(store).snapshot(obs, phase_noise=0.08, step=7)
    assert snap.step == 7
    assert snap.innovation_error == pytest.approx(5.0)
    assert snap.coherence == pytest.approx(0.92)
    assert snap.recursion_dominance == pytest.approx(1 / 3)
    assert 0.0 < snap.health <= 1.0
    assert snap.as_dict()["step"] == 7
