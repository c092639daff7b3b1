"""
Query Engine - Stateless filtering over the packet store

WHAT: Tag/kind/time filters with recency ordering over a PacketStore
WHERE: vireax/field/query.py - read layer above the store
WHO: MetricsEngine, operators, kernel snapshot builders
TIME: O(candidates · log candidates) per query

Algorithm:
1. tags_any -> union of tag id sets
2. tags_all -> intersect with every tag's id set
   (no tag filter -> candidates start as all ids)
3. since_t/until_t -> intersect with the timeline slice (inclusive bounds)
4. resolve ids, filter by kinds
5. sort by t descending, ties: later insertion first
6. truncate to limit (keeps the most recent)

An impossible filter is an empty result, never an error.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set

from .packets import InfoPacket, KindLike, kind_value
from .store import PacketStore


def _as_tuple(values) -> Optional[tuple]:
    if values is None:
        return None
    # a bare string is one value
    if isinstance(values, str):
        return (values,) if values else None
    return tuple(values) or None


@dataclass(slots=True, frozen=True)
class PacketQuery:
    tags_any: Optional[tuple[str, ...]] = None
    tags_all: Optional[tuple[str, ...]] = None
    kinds: Optional[tuple[str, ...]] = None
    since_t: Optional[float] = None
    until_t: Optional[float] = None
    limit: Optional[int] = None

    @classmethod
    def build(
        cls,
        *,
        tags_any: Iterable[str] | None = None,
        tags_all: Iterable[str] | None = None,
        kinds: Iterable[KindLike] | None = None,
        since_t: float | None = None,
        until_t: float | None = None,
        limit: int | None = None,
    ) -> "PacketQuery":
        kinds = _as_tuple(kinds)
        return cls(
            tags_any=_as_tuple(tags_any),
            tags_all=_as_tuple(tags_all),
            kinds=tuple(kind_value(k) for k in kinds) if kinds else None,
            since_t=since_t,
            until_t=until_t,
            limit=limit,
        )


class QueryEngine:
    """Read-only query facade bound to one store handle."""

    def __init__(self, store: PacketStore) -> None:
        self._store = store

    @property
    def store(self) -> PacketStore:
        return self._store

    def query(self, q: PacketQuery | None = None, **filters) -> List[InfoPacket]:
        """Run a query given as a PacketQuery or as keyword filters."""

        if q is None:
            q = PacketQuery.build(**filters)
        if q.limit is not None and q.limit <= 0:
            return []

        candidates: Optional[Set[str]] = None

        if q.tags_any:
            candidates = set()
            for tag in q.tags_any:
                candidates |= self._store.ids_for_tag(tag)

        if q.tags_all:
            for tag in q.tags_all:
                tagged = self._store.ids_for_tag(tag)
                candidates = set(tagged) if candidates is None else candidates & tagged

        if candidates is None:
            candidates = set(self._store.all_ids())

        if q.since_t is not None or q.until_t is not None:
            candidates &= self._ids_in_range(q.since_t, q.until_t)

        if not candidates:
            return []

        kinds = set(q.kinds) if q.kinds else None
        rows = []
        for pid in candidates:
            packet = self._store.get(pid)
            if packet is None:
                continue
            if kinds is not None and packet.kind_name not in kinds:
                continue
            rows.append(packet)

        # equal t: the later insertion counts as more recent
        rows.sort(key=lambda p: (p.t, self._store.insertion_seq(p.id) or 0), reverse=True)

        if q.limit is not None:
            rows = rows[: q.limit]
        return rows

    def latest_of_kind(self, kind: KindLike) -> Optional[InfoPacket]:
        rows = self.query(PacketQuery.build(kinds=[kind], limit=1))
        return rows[0] if rows else None

    def count(self, q: PacketQuery | None = None, **filters) -> int:
        return len(self.query(q, **filters))

    def _ids_in_range(self, since_t: Optional[float], until_t: Optional[float]) -> FrozenSet[str]:
        timeline = self._store.timeline()
        lo_t = -math.inf if since_t is None else since_t
        hi_t = math.inf if until_t is None else until_t
        if lo_t > hi_t:
            return frozenset()
        # (t, -1) sorts before every real entry at t; (t, inf) after all of them
        lo = bisect.bisect_left(timeline, (lo_t, -1))
        hi = bisect.bisect_right(timeline, (hi_t, math.inf))
        return frozenset(pid for _, _, pid in timeline[lo:hi])


__all__ = ["PacketQuery", "QueryEngine"]
