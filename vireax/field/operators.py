"""
Field Operators - Centroid and hierarchical compression of packets

WHAT: Operators that read the field and emit new summary packets
WHERE: vireax/field/operators.py - derivation layer above QueryEngine
WHO: Kernel cycle running eligible operators after the gauge update
TIME: O(window) per operator run

Two-phase contract per operator:
1. applicable(store, ctx) -> bool   (pure, never raises)
2. run(store, ctx) -> OpResult      (builds new packets only)

The pipeline submits every produced packet through PacketStore.put.
`consumed` ids are lineage bookkeeping; consumed packets stay in the store
and remain queryable.

Boundary Notes:
- CentroidOperator: single-level compression of grounded packets
- HierarchyOperator: macro summaries over summaries, ignition only
- Quarantined packets never enter normal compression
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from .packets import InfoPacket, PacketKind, create_packet
from .query import PacketQuery, QueryEngine
from .store import PacketStore

logger = logging.getLogger(__name__)

QUARANTINE_TAG = "quarantine"


@dataclass(slots=True)
class OpContext:
    """Per-cycle inputs handed to operators."""

    step: int = 0
    ignition: bool = False
    budget: Dict[str, float] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class OpResult:
    produced: List[InfoPacket] = field(default_factory=list)
    consumed: List[str] = field(default_factory=list)
    score_delta: float = 0.0
    notes: List[str] = field(default_factory=list)
    operator: str = ""


def centroid_of(packets: Sequence[InfoPacket]) -> tuple[float, float]:
    pts = np.asarray([p.embedding for p in packets], dtype=float)
    cx, cy = pts.mean(axis=0)
    return float(cx), float(cy)


def mean_squared_dispersion(packets: Sequence[InfoPacket], center: Sequence[float]) -> float:
    pts = np.asarray([p.embedding for p in packets], dtype=float)
    return float(np.mean(np.sum((pts - np.asarray(center, dtype=float)) ** 2, axis=1)))


class Operator:
    """Base class; subclasses implement `applicable` and `run`."""

    name: str = "operator"

    def applicable(self, store: PacketStore, ctx: OpContext) -> bool:
        raise NotImplementedError

    def run(self, store: PacketStore, ctx: OpContext) -> OpResult:
        raise NotImplementedError


@dataclass
class CentroidOperator(Operator):
    """Compress recent grounded observations/beliefs/traces into one summary."""

    window: int = 32
    min_points: int = 4
    source_tags: tuple[str, ...] = ("observation", "belief", "trace")
    score_delta: float = 0.5
    min_confidence: float = 0.1
    name: str = "centroid.compress"

    def eligible(self, store: PacketStore) -> List[InfoPacket]:
        rows = QueryEngine(store).query(PacketQuery.build(tags_any=self.source_tags, limit=self.window))
        return [p for p in rows if p.embedding is not None and not p.has_tag(QUARANTINE_TAG)]

    def applicable(self, store: PacketStore, ctx: OpContext) -> bool:
        return len(self.eligible(store)) >= self.min_points

    def run(self, store: PacketStore, ctx: OpContext) -> OpResult:
        members = self.eligible(store)
        if not members:
            return OpResult(operator=self.name, notes=["No grounded embeddings to compress."])

        center = centroid_of(members)
        dispersion = mean_squared_dispersion(members, center)
        mean_conf = float(np.mean([p.confidence for p in members]))
        confidence = max(self.min_confidence, mean_conf * math.exp(-dispersion))
        member_ids = [p.id for p in members]

        summary = create_packet(
            kind=PacketKind.SUMMARY,
            payload={"type": "centroid_summary", "count": len(members), "dispersion": dispersion},
            embedding=center,
            tags=["memory", "summary"],
            confidence=min(1.0, confidence),
            parents=member_ids,
            operator=self.name,
            meta={"step": ctx.step},
        )
        return OpResult(
            produced=[summary],
            consumed=member_ids,
            score_delta=self.score_delta,
            notes=[f"Compressed {len(members)} embeddings into centroid."],
            operator=self.name,
        )


@dataclass
class HierarchyOperator(Operator):
    """Re-cluster recent summaries into macro summaries while ignition is active."""

    window: int = 96
    target_count: int = 10
    min_summaries: int = 10
    macro_confidence: float = 0.7
    score_delta: float = 1.0
    name: str = "hierarchy.compress"

    def _summaries(self, store: PacketStore) -> List[InfoPacket]:
        return QueryEngine(store).query(PacketQuery.build(kinds=[PacketKind.SUMMARY], limit=self.window))

    def applicable(self, store: PacketStore, ctx: OpContext) -> bool:
        if not ctx.ignition:
            return False
        return len(self._summaries(store)) >= self.min_summaries

    def run(self, store: PacketStore, ctx: OpContext) -> OpResult:
        summaries = [p for p in self._summaries(store) if p.embedding is not None]
        if not summaries:
            return OpResult(operator=self.name, notes=["No embedded summaries to re-cluster."])

        chunk_size = max(1, math.ceil(len(summaries) / self.target_count))
        produced: List[InfoPacket] = []
        for start in range(0, len(summaries), chunk_size):
            chunk = summaries[start : start + chunk_size]
            produced.append(
                create_packet(
                    kind=PacketKind.SUMMARY,
                    payload={"type": "macro_summary", "count": len(chunk)},
                    embedding=centroid_of(chunk),
                    tags=["macro", "map", "do_not_prune_micro", "summary"],
                    confidence=self.macro_confidence,
                    parents=[p.id for p in chunk],
                    operator=self.name,
                    meta={"step": ctx.step},
                )
            )

        return OpResult(
            produced=produced,
            consumed=[p.id for p in summaries],
            score_delta=self.score_delta,
            notes=[
                f"Hierarchical re-clustering: generated {len(produced)} macro-centroids "
                f"from {len(summaries)} summaries."
            ],
            operator=self.name,
        )


class OperatorPipeline:
    """Checks operators in order and commits what the eligible ones produce."""

    def __init__(self, store: PacketStore, operators: Sequence[Operator] | None = None) -> None:
        self._store = store
        self._operators: List[Operator] = list(
            operators if operators is not None else (CentroidOperator(), HierarchyOperator())
        )

    @property
    def operators(self) -> tuple[Operator, ...]:
        return tuple(self._operators)

    def eligible(self, ctx: OpContext) -> List[Operator]:
        return [op for op in self._operators if op.applicable(self._store, ctx)]

    def run_eligible(self, ctx: OpContext) -> List[OpResult]:
        results: List[OpResult] = []
        for op in self._operators:
            if not op.applicable(self._store, ctx):
                continue
            result = op.run(self._store, ctx)
            for packet in result.produced:
                self._store.put(packet)
            for note in result.notes:
                logger.info(f"Operator {op.name}: {note}")
            results.append(result)
        return results


__all__ = [
    "CentroidOperator",
    "HierarchyOperator",
    "OpContext",
    "OpResult",
    "Operator",
    "OperatorPipeline",
    "QUARANTINE_TAG",
    "centroid_of",
    "mean_squared_dispersion",
]
