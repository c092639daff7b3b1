"""
Packets - Immutable value entities of the information field

WHAT: Pydantic model for typed packets (observations, summaries, self-models, ...)
WHERE: vireax/field/packets.py - data layer under the packet store
WHO: Kernel cycle, operators and metrics reading/writing the field
TIME: Model validation <1ms

Every entry in the field is an InfoPacket. Packets are frozen once built;
an "update" is always a new packet that lists its antecedents in `parents`.

Kinds form a closed set (PacketKind) with an open extension: any other kind
string is kept verbatim and treated as a custom kind.

Boundary Notes:
- Payload is opaque; nothing in the field interprets it
- Payload and meta are copied into read-only containers on construction
- Embedding is a 2-D point, components conceptually in [0, 1]
- Parent ids must already exist in the store when the packet is inserted
"""

from __future__ import annotations

import math
import time
import uuid
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class PacketKind(str, Enum):
    """Known packet kinds."""

    OBSERVATION = "observation"
    BELIEF = "belief"
    GOAL = "goal"
    MODEL = "model"
    TRACE = "trace"
    SUMMARY = "summary"
    SELF_MODEL = "self_model"
    ANCHOR = "anchor"


KindLike = Union[PacketKind, str]

# Kinds produced by the kernel itself rather than observed from outside.
INTERNAL_KINDS = frozenset(
    {
        PacketKind.SUMMARY,
        PacketKind.TRACE,
        PacketKind.SELF_MODEL,
        PacketKind.MODEL,
        PacketKind.BELIEF,
    }
)

_KNOWN_KINDS = {k.value: k for k in PacketKind}


def normalize_kind(kind: KindLike) -> KindLike:
    """Return the PacketKind member for known kinds, the plain string otherwise."""
    if isinstance(kind, PacketKind):
        return kind
    return _KNOWN_KINDS.get(str(kind), str(kind))


def is_custom_kind(kind: KindLike) -> bool:
    return not isinstance(normalize_kind(kind), PacketKind)


def kind_value(kind: KindLike) -> str:
    return kind.value if isinstance(kind, PacketKind) else str(kind)


def generate_packet_id() -> str:
    """Opaque 32-char hex id, never reused."""
    return uuid.uuid4().hex


def freeze_value(value: Any) -> Any:
    """Copy a JSON-like value into read-only containers (dict -> mappingproxy, list -> tuple)."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_value(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze_value(v) for v in value)
    return value


def thaw_value(value: Any) -> Any:
    """Plain dict/list copy of a frozen value, for serialisation."""
    if isinstance(value, Mapping):
        return {k: thaw_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, frozenset)):
        return [thaw_value(v) for v in value]
    return value


class InfoPacket(BaseModel):
    """
    One entry of the information field.

    Examples:
    - kind="observation", embedding=(0.61, 0.42), tags=("sensor", "observation")
    - kind="summary", parents=(<obs ids>), operator="centroid.compress"
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_packet_id, min_length=1)
    t: float = Field(default_factory=time.time, allow_inf_nan=False)
    kind: KindLike = Field(default="fact", union_mode="left_to_right")
    payload: Any = None
    embedding: Optional[Tuple[float, float]] = None
    tags: Tuple[str, ...] = ()
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    parents: Tuple[str, ...] = ()
    operator: Optional[str] = None
    meta: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> KindLike:
        return normalize_kind(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _dedupe_tags(cls, value: Any) -> Tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        # dict.fromkeys keeps first-seen order
        return tuple(dict.fromkeys(str(tag) for tag in value))

    @field_validator("embedding", mode="before")
    @classmethod
    def _coerce_embedding(cls, value: Any) -> Optional[Tuple[float, float]]:
        if value is None:
            return None
        coords = tuple(float(v) for v in value)
        if len(coords) != 2:
            raise ValueError(f"embedding must have exactly 2 components, got {len(coords)}")
        if not all(math.isfinite(c) for c in coords):
            raise ValueError(f"embedding components must be finite, got {coords}")
        return coords

    @field_validator("payload", "meta", mode="after")
    @classmethod
    def _freeze_containers(cls, value: Any) -> Any:
        return freeze_value(value)

    @field_serializer("payload", "meta")
    def _thaw_containers(self, value: Any) -> Any:
        return thaw_value(value)

    @property
    def kind_name(self) -> str:
        return kind_value(self.kind)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def has_embedding(self) -> bool:
        return self.embedding is not None

    def projection(self) -> Dict[str, Any]:
        """Reduced view handed to the report collaborator."""
        return {"kind": self.kind_name, "tags": list(self.tags), "payload": thaw_value(self.payload)}


def create_packet(**fields: Any) -> InfoPacket:
    """Build a packet, applying defaults for anything not given."""
    return InfoPacket(**fields)


__all__ = [
    "INTERNAL_KINDS",
    "InfoPacket",
    "KindLike",
    "PacketKind",
    "create_packet",
    "freeze_value",
    "generate_packet_id",
    "is_custom_kind",
    "kind_value",
    "normalize_kind",
    "thaw_value",
]
