"""Utilities for recording per-cycle health records.

Each record captures the gauge of one kernel cycle (innovation error,
diversity, coherence, recursion dominance, volatility) together with the
health functional weights that produced the composite score:

    H_t = exp(-α·ε_t) · σ(β·(N_eff - N0)) · exp(-γ·S_t) · exp(-δ·R_t)

Records are plain dicts and can be appended to a JSONL file for offline
analysis. Only diagnostics are written; packets themselves are not.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping

from ..field.metrics import HealthWeights, MetricsSnapshot, composite_health


def build_health_record(
    *,
    label: str,
    snapshot: MetricsSnapshot,
    weights: HealthWeights | None = None,
    store_size: int | None = None,
    notes: str = "",
    timestamp: datetime | None = None,
) -> Dict[str, Any]:
    """Construct a structured health record for one cycle."""

    w = weights or HealthWeights()
    s_t = 1.0 - snapshot.coherence
    recomputed = composite_health(
        snapshot.innovation_error,
        snapshot.diversity,
        s_t,
        snapshot.recursion_dominance,
        w,
    )

    record: Dict[str, Any] = {
        "label": label,
        "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        "step": snapshot.step,
        "gauge": {
            "innovation_error": snapshot.innovation_error,
            "diversity": snapshot.diversity,
            "coherence": snapshot.coherence,
            "phase_noise": s_t,
            "recursion_dominance": snapshot.recursion_dominance,
            "volatility": snapshot.volatility,
        },
        "weights": asdict(w),
        "health": snapshot.health,
        # differs from `health` only when the snapshot came from other weights
        "health_recomputed": recomputed,
    }
    if store_size is not None:
        record["store_size"] = int(store_size)
    if notes:
        record["notes"] = notes
    return record


def append_record(output_path: Path, record: Mapping[str, Any]) -> None:
    """Append a record to a JSONL file."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("a", encoding="utf-8") as fh:
        json.dump(record, fh, ensure_ascii=False)
        fh.write("\n")


def read_records(input_path: Path) -> Iterator[Dict[str, Any]]:
    """Yield records from a JSONL file, skipping blank lines."""

    with input_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                yield json.loads(line)


def log_health(
    *,
    label: str,
    snapshot: MetricsSnapshot,
    weights: HealthWeights | None = None,
    store_size: int | None = None,
    notes: str = "",
    output_path: Path | None = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """Build (and optionally persist) a health record."""

    record = build_health_record(
        label=label,
        snapshot=snapshot,
        weights=weights,
        store_size=store_size,
        notes=notes,
    )

    if output_path is not None and not dry_run:
        append_record(output_path, record)

    return record


__all__ = [
    "append_record",
    "build_health_record",
    "log_health",
    "read_records",
]
