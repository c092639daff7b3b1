"""
Information Field - Packets, Store, Queries, Metrics & Operators

WHAT: Local library holding the append-only packet field and its diagnostics
WHERE: vireax/field/ - core subsystem under the runtime kernel
WHO: Kernel cycle, presentation snapshots, tests
TIME: Every operation is in-process and sub-millisecond at default windows

Packet kinds:
- observation: externally sourced (or locally synthesized) signals
- summary: centroid / macro compressions produced by operators
- self_model: periodic kernel snapshots
- belief, goal, model, trace, anchor: other internal or reference packets

Operations:
- PacketStore.put / get / get_latest / size
- QueryEngine.query(tags_any, tags_all, kinds, since_t, until_t, limit)
- MetricsEngine: innovation_error, diversity, recursion_dominance,
  volatility, composite health
- OperatorPipeline: CentroidOperator, HierarchyOperator

Boundary Notes:
- The store handle is owned by the session; there is no global field
- Nothing here performs I/O
"""

from .metrics import HealthWeights, MetricsEngine, MetricsSnapshot, composite_health  # noqa: F401
from .operators import (  # noqa: F401
    CentroidOperator,
    HierarchyOperator,
    OpContext,
    Operator,
    OperatorPipeline,
    OpResult,
)
from .packets import INTERNAL_KINDS, InfoPacket, PacketKind, create_packet, normalize_kind  # noqa: F401
from .query import PacketQuery, QueryEngine  # noqa: F401
from .store import InMemoryPacketStore, LineageError, MissingParentError, PacketStore  # noqa: F401

__all__ = [
    "CentroidOperator",
    "HealthWeights",
    "HierarchyOperator",
    "INTERNAL_KINDS",
    "InMemoryPacketStore",
    "InfoPacket",
    "LineageError",
    "MetricsEngine",
    "MetricsSnapshot",
    "MissingParentError",
    "OpContext",
    "OpResult",
    "Operator",
    "OperatorPipeline",
    "PacketKind",
    "PacketQuery",
    "PacketStore",
    "QueryEngine",
    "composite_health",
    "create_packet",
    "normalize_kind",
]
