"""
Cycle Telemetry - Timed records of kernel cycles and collaborator calls

WHAT: Spans around each kernel cycle, remote observation and report request
WHERE: vireax/runtime/telemetry.py - observability layer
WHO: FieldKernel (kernel.cycle, kernel.observe_remote, kernel.report)
TIME: Zero-overhead when disabled, <0.1ms overhead when enabled

A span finishes into a SpanRecord carrying the cycle step, the observation
source, the store size and the outcome. Sinks: discard, stdlib logging, or
an in-memory ring buffer for inspection.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SpanRecord:
    """Outcome of one timed unit of kernel work."""

    name: str
    step: Optional[int] = None
    source: Optional[str] = None
    store_size: Optional[int] = None
    started_at: float = 0.0
    duration_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class KernelSpan:
    """Context manager filling a SpanRecord; exceptions propagate unchanged."""

    def __init__(self, client: "TelemetryClient", name: str, step: Optional[int] = None) -> None:
        self._client = client
        self.record = SpanRecord(name=name, step=step)
        self._t0 = 0.0

    def __enter__(self) -> "KernelSpan":
        self.record.started_at = time.time()
        self._t0 = time.perf_counter()
        return self

    def note(self, **attributes: Any) -> None:
        """Attach cycle facts; `source` and `store_size` land on the record itself."""
        for key in ("source", "store_size"):
            if key in attributes:
                setattr(self.record, key, attributes.pop(key))
        self.record.attributes.update(attributes)

    def __exit__(self, exc_type, exc, exc_tb) -> bool:
        self.record.duration_ms = (time.perf_counter() - self._t0) * 1000.0
        if exc is not None:
            self.record.success = False
            self.record.error = f"{type(exc).__name__}: {exc}"
        self._client.emit(self.record)
        return False


class TelemetryClient:
    """Base client; subclasses override `emit`."""

    def span(self, name: str, *, step: Optional[int] = None) -> KernelSpan:
        return KernelSpan(self, name, step)

    def emit(self, record: SpanRecord) -> None:
        raise NotImplementedError


class NoOpTelemetryClient(TelemetryClient):
    def emit(self, record: SpanRecord) -> None:
        pass


class LoggingTelemetryClient(TelemetryClient):
    """Writes each finished span as one log line."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def emit(self, record: SpanRecord) -> None:
        status = "ok" if record.success else f"failed ({record.error})"
        logger.log(
            self._level,
            f"[telemetry] {record.name} step={record.step} source={record.source} "
            f"size={record.store_size} {record.duration_ms:.2f}ms {status} {record.attributes}",
        )


class RecordingTelemetryClient(TelemetryClient):
    """Keeps the most recent span records in memory."""

    def __init__(self, capacity: int = 256) -> None:
        self._records: Deque[SpanRecord] = deque(maxlen=capacity)

    def emit(self, record: SpanRecord) -> None:
        self._records.append(record)

    @property
    def spans(self) -> List[SpanRecord]:
        return list(self._records)

    def named(self, name: str) -> List[SpanRecord]:
        return [r for r in self._records if r.name == name]

    def failures(self) -> List[SpanRecord]:
        return [r for r in self._records if not r.success]


__all__ = [
    "KernelSpan",
    "LoggingTelemetryClient",
    "NoOpTelemetryClient",
    "RecordingTelemetryClient",
    "SpanRecord",
    "TelemetryClient",
]
