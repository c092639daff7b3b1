"""
Packet Store - Append-only indexed container for the information field

WHAT: In-memory packet map with a time-ordered timeline and a tag index
WHERE: vireax/field/store.py - single owner of field state
WHO: Kernel cycle (writes), QueryEngine/MetricsEngine/operators (reads)
TIME: put O(log n + tags), get O(1), get_latest O(k)

Provides a minimal PacketStore interface with an in-memory implementation.
The store never removes or rewrites a packet; operators that "consume"
packets only record the fact in their OpResult.

Structures:
- packets: id -> InfoPacket
- timeline: (t, seq, id) sorted ascending; seq breaks ties by insertion order
- tag index: tag -> set of ids (exact inverse of each packet's tags)

Boundary Notes:
- put is idempotent on id; duplicates are a no-op
- Lineage is validated for new packets: every parent must already be stored
- Not thread-safe; the single cycle driver owns the store handle
"""

from __future__ import annotations

import bisect
import logging
from collections import deque
from typing import Dict, FrozenSet, Iterator, List, Optional, Protocol, Set, Tuple

from .packets import InfoPacket

logger = logging.getLogger(__name__)

TimelineEntry = Tuple[float, int, str]


class LineageError(ValueError):
    """Raised when a packet's parent list would break the lineage DAG."""


class MissingParentError(LineageError):
    """Raised when a packet references a parent id that is not in the store."""

    def __init__(self, packet_id: str, missing: List[str]) -> None:
        self.packet_id = packet_id
        self.missing = list(missing)
        super().__init__(f"Packet {packet_id} references unknown parents: {', '.join(missing)}")


class PacketStore(Protocol):
    """Abstract interface for the field's packet container."""

    def put(self, packet: InfoPacket) -> str:
        """Insert a packet (idempotent on id); returns the id."""

    def get(self, packet_id: str) -> Optional[InfoPacket]:
        """Return the packet for an id, or None."""

    def get_latest(self, n: int = 10) -> List[InfoPacket]:
        """Most-recent-first packets, min(n, size) long."""

    def size(self) -> int:
        """Number of stored packets."""

    def all_ids(self) -> FrozenSet[str]:
        """Snapshot of every stored id."""

    def ids_for_tag(self, tag: str) -> FrozenSet[str]:
        """Snapshot of ids carrying a tag."""

    def timeline(self) -> Tuple[TimelineEntry, ...]:
        """Ascending (t, seq, id) entries."""

    def insertion_seq(self, packet_id: str) -> Optional[int]:
        """Zero-based insertion position of a stored id."""


class InMemoryPacketStore(PacketStore):
    """Dict/list backed store; nothing is ever deleted."""

    def __init__(self) -> None:
        self._packets: Dict[str, InfoPacket] = {}
        self._seq: Dict[str, int] = {}
        self._timeline: List[TimelineEntry] = []
        self._tag_index: Dict[str, Set[str]] = {}
        self._next_seq = 0

    # ------------------ writes ------------------
    def validate(self, packet: InfoPacket) -> None:
        """Reject packets whose parents are not already in the store."""

        if packet.id in packet.parents:
            raise LineageError(f"Packet {packet.id} lists itself as a parent")
        missing = [pid for pid in packet.parents if pid not in self._packets]
        if missing:
            raise MissingParentError(packet.id, missing)

    def put(self, packet: InfoPacket) -> str:
        if packet.id in self._packets:
            return packet.id

        self.validate(packet)

        seq = self._next_seq
        self._next_seq += 1
        self._packets[packet.id] = packet
        self._seq[packet.id] = seq
        # (t, seq) is unique, so ids never take part in the comparison
        bisect.insort(self._timeline, (packet.t, seq, packet.id))
        for tag in packet.tags:
            self._tag_index.setdefault(tag, set()).add(packet.id)

        logger.debug(f"Stored packet {packet.id} kind={packet.kind_name} tags={list(packet.tags)}")
        return packet.id

    # ------------------ reads -------------------
    def get(self, packet_id: str) -> Optional[InfoPacket]:
        return self._packets.get(packet_id)

    def get_latest(self, n: int = 10) -> List[InfoPacket]:
        if n <= 0:
            return []
        tail = self._timeline[-n:]
        return [self._packets[pid] for _, _, pid in reversed(tail)]

    def size(self) -> int:
        return len(self._packets)

    def __len__(self) -> int:
        return len(self._packets)

    def __contains__(self, packet_id: object) -> bool:
        return packet_id in self._packets

    def __iter__(self) -> Iterator[InfoPacket]:
        """Iterate in timeline order (oldest first)."""
        for _, _, pid in self._timeline:
            yield self._packets[pid]

    def all_ids(self) -> FrozenSet[str]:
        return frozenset(self._packets)

    def ids_for_tag(self, tag: str) -> FrozenSet[str]:
        return frozenset(self._tag_index.get(tag, ()))

    def tags(self) -> List[str]:
        return sorted(self._tag_index)

    def timeline(self) -> Tuple[TimelineEntry, ...]:
        return tuple(self._timeline)

    def insertion_seq(self, packet_id: str) -> Optional[int]:
        return self._seq.get(packet_id)

    # ------------------ lineage -----------------
    def lineage(self, packet_id: str) -> List[InfoPacket]:
        """Ancestors of a packet, breadth-first, each listed once."""

        root = self._packets.get(packet_id)
        if root is None:
            return []
        seen: Set[str] = {packet_id}
        order: List[InfoPacket] = []
        queue = deque(root.parents)
        while queue:
            pid = queue.popleft()
            if pid in seen:
                continue
            seen.add(pid)
            parent = self._packets.get(pid)
            if parent is None:
                continue
            order.append(parent)
            queue.extend(parent.parents)
        return order

    # ------------------ invariants --------------
    def verify_indexes(self) -> List[str]:
        """Rebuild both indexes from the packet map and report any drift.

        Returns a list of human-readable problems; empty means consistent.
        """

        problems: List[str] = []

        expected_tags: Dict[str, Set[str]] = {}
        for pid, packet in self._packets.items():
            for tag in packet.tags:
                expected_tags.setdefault(tag, set()).add(pid)
        actual_tags = {tag: ids for tag, ids in self._tag_index.items() if ids}
        if expected_tags != actual_tags:
            for tag in sorted(set(expected_tags) | set(actual_tags)):
                if expected_tags.get(tag, set()) != actual_tags.get(tag, set()):
                    problems.append(f"tag index mismatch for '{tag}'")

        expected_timeline = sorted((p.t, self._seq[pid], pid) for pid, p in self._packets.items())
        if expected_timeline != self._timeline:
            problems.append("timeline is not the (t, insertion order) sort of the packet map")

        for pid, packet in self._packets.items():
            for parent in packet.parents:
                if parent not in self._packets:
                    problems.append(f"packet {pid} has dangling parent {parent}")
                elif self._seq[parent] >= self._seq[pid]:
                    problems.append(f"packet {pid} was stored before its parent {parent}")

        return problems


__all__ = [
    "InMemoryPacketStore",
    "LineageError",
    "MissingParentError",
    "PacketStore",
    "TimelineEntry",
]
