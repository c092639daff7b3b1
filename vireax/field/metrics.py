"""
Field Metrics - Per-cycle diagnostics over the packet store

WHAT: Innovation error, diversity, recursion dominance, volatility, health
WHERE: vireax/field/metrics.py - measurement layer above QueryEngine
WHO: Kernel cycle computing the gauge after each observation
TIME: O(window · centroids) per cycle, <1ms for default windows

All functions are pure given the current store contents.

Health functional:
    H_t = exp(-α·ε_t) · σ(β·(N_eff - N0)) · exp(-γ·S_t) · exp(-δ·R_t)

Boundary Notes:
- Only embedded packets take part in geometric metrics
- Diversity defaults to 1.0 (neutral) because it multiplies into H_t
- δ = 0 disables the recursion penalty
"""

from __future__ import annotations

import math
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .packets import INTERNAL_KINDS, InfoPacket, KindLike, PacketKind
from .query import PacketQuery, QueryEngine
from .store import PacketStore

# Most recent summaries used as reference centroids for diversity.
DIVERSITY_CENTROIDS = 10

_MIN_HEALTH = sys.float_info.min


@dataclass(slots=True)
class HealthWeights:
    """Coefficients of the health functional."""

    alpha: float = 2.0
    beta: float = 2.0
    gamma: float = 5.0
    delta: float = 1.5
    n0: float = 1.5


@dataclass(slots=True)
class MetricsSnapshot:
    """Gauge values computed for one cycle."""

    innovation_error: float = 0.0
    diversity: float = 1.0
    coherence: float = 1.0
    recursion_dominance: float = 0.0
    volatility: float = 0.0
    health: float = 1.0
    step: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _points(packets: Sequence[InfoPacket]) -> np.ndarray:
    return np.asarray([p.embedding for p in packets], dtype=float).reshape(-1, 2)


def euclidean(a: Sequence[float], b: Sequence[float]) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def sigmoid(x: float) -> float:
    # split form avoids overflow in exp for large |x|
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def composite_health(
    eps: float,
    n_eff: float,
    s_t: float,
    r_t: float,
    weights: HealthWeights | None = None,
) -> float:
    """Health functional in (0, 1]."""

    w = weights or HealthWeights()
    log_h = -w.alpha * eps - w.gamma * s_t - w.delta * r_t
    health = math.exp(min(0.0, log_h)) * sigmoid(w.beta * (n_eff - w.n0))
    return float(min(1.0, max(_MIN_HEALTH, health)))


class MetricsEngine:
    """Computes the cycle gauge from the store through a QueryEngine."""

    def __init__(
        self,
        store: PacketStore,
        *,
        reference_kind: KindLike = PacketKind.SUMMARY,
        weights: HealthWeights | None = None,
        query_engine: QueryEngine | None = None,
    ) -> None:
        self._store = store
        self._query = query_engine or QueryEngine(store)
        self._reference_kind = reference_kind
        self._weights = weights or HealthWeights()

    @property
    def weights(self) -> HealthWeights:
        return self._weights

    @property
    def reference_kind(self) -> KindLike:
        return self._reference_kind

    def _embedded(self, kind: KindLike, limit: int) -> List[InfoPacket]:
        rows = self._query.query(PacketQuery.build(kinds=[kind], limit=limit))
        return [p for p in rows if p.embedding is not None]

    # ------------------ metrics -----------------
    def innovation_error(self, obs: InfoPacket) -> float:
        """Distance from an observation to the current reference packet."""

        reference = self._query.latest_of_kind(self._reference_kind)
        if reference is None or reference.embedding is None or obs.embedding is None:
            return 0.0
        return euclidean(obs.embedding, reference.embedding)

    def diversity(self, window: int = 32) -> float:
        """Effective number of active clusters, exp(Shannon entropy)."""

        observations = self._embedded(PacketKind.OBSERVATION, window)
        centroids = self._embedded(PacketKind.SUMMARY, DIVERSITY_CENTROIDS)
        if not observations or not centroids:
            return 1.0

        obs_pts = _points(observations)
        cen_pts = _points(centroids)
        # (n_obs, n_centroids) distance matrix; argmin takes the first (most recent) on ties
        dists = np.linalg.norm(obs_pts[:, None, :] - cen_pts[None, :, :], axis=2)
        nearest = np.argmin(dists, axis=1)
        counts = np.bincount(nearest, minlength=len(centroids))
        p = counts[counts > 0] / len(observations)
        entropy = float(-np.sum(p * np.log(p)))
        return math.exp(entropy)

    def recursion_dominance(self, window: int = 32) -> float:
        """Share of recent packets that the kernel generated itself."""

        recent = self._store.get_latest(window)
        if not recent:
            return 0.0
        internal = sum(1 for p in recent if p.kind in INTERNAL_KINDS)
        return internal / len(recent)

    def volatility(self, window: int = 10) -> float:
        """Mean step length between consecutive recent observation embeddings."""

        observations = self._embedded(PacketKind.OBSERVATION, window)
        if len(observations) < 2:
            return 0.0
        pts = _points(observations)
        steps = np.linalg.norm(np.diff(pts, axis=0), axis=1)
        return float(steps.mean())

    def health(self, eps: float, n_eff: float, s_t: float, r_t: float) -> float:
        return composite_health(eps, n_eff, s_t, r_t, self._weights)

    def snapshot(
        self,
        obs: Optional[InfoPacket],
        *,
        phase_noise: float = 0.0,
        step: int = 0,
        diversity_window: int = 32,
        recursion_window: int = 32,
        volatility_window: int = 10,
    ) -> MetricsSnapshot:
        """Compute every gauge value for the current store state."""

        eps = self.innovation_error(obs) if obs is not None else 0.0
        n_eff = self.diversity(diversity_window)
        r_t = self.recursion_dominance(recursion_window)
        v_t = self.volatility(volatility_window)
        return MetricsSnapshot(
            innovation_error=eps,
            diversity=n_eff,
            coherence=1.0 - phase_noise,
            recursion_dominance=r_t,
            volatility=v_t,
            health=self.health(eps, n_eff, phase_noise, r_t),
            step=step,
        )


__all__ = [
    "DIVERSITY_CENTROIDS",
    "HealthWeights",
    "MetricsEngine",
    "MetricsSnapshot",
    "composite_health",
    "euclidean",
    "sigmoid",
]
