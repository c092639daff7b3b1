"""Logging utilities for the Vireax kernel.

Health records are JSON-serialisable dicts describing one cycle's gauge;
`log_health` optionally appends them to a JSONL file.
"""

from __future__ import annotations

from .health import (  # noqa: F401
    append_record,
    build_health_record,
    log_health,
    read_records,
)

__all__ = [
    "append_record",
    "build_health_record",
    "log_health",
    "read_records",
]
