"""
Prompt Templates - Text sent to the remote observation/report generators

WHAT: Prompt strings and JSON response schema for the Gemini collaborators
WHERE: vireax/runtime/prompting.py - prompt composition layer
WHO: GeminiObservationSource, GeminiReportSource
TIME: Prompt assembly <1ms
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable

from ..field.packets import InfoPacket

REPORT_PROMPT = """Analyze the following cognitive field packets from an AI's internal memory.
Summarize the current state, identify emerging patterns, and suggest potential "Higher-Order Cognitive Goals".

Packets:
{packets}

Format the response as a professional, brief cognitive report."""

OBSERVATION_PROMPT = (
    "Generate a random, interesting data point for a cognitive system "
    "(e.g. sensor data, user input, abstract thought). Provide it as JSON with fields "
    '"payload" (object), "embedding" (array of 2 floats 0-1), and "tags" (array of strings).'
)

OBSERVATION_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "payload": {"type": "OBJECT", "properties": {"data": {"type": "STRING"}}},
        "embedding": {"type": "ARRAY", "items": {"type": "NUMBER"}},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["payload", "embedding", "tags"],
}


def format_report_prompt(packets: Iterable[InfoPacket]) -> str:
    """Render the report prompt over the kind/tags/payload projection only."""
    projected = [p.projection() for p in packets]
    return REPORT_PROMPT.format(packets=json.dumps(projected, indent=2, default=str))


__all__ = [
    "OBSERVATION_PROMPT",
    "OBSERVATION_SCHEMA",
    "REPORT_PROMPT",
    "format_report_prompt",
]
