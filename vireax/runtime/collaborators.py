"""
Collaborators - Observation and report generators outside the core

WHAT: Protocols plus Gemini-backed and local implementations of the two
      external generators the kernel awaits on
WHERE: vireax/runtime/collaborators.py - only suspension points of a cycle
WHO: FieldKernel (observe step, analyze on demand)
TIME: Remote calls 0.5-5s; local synthesis <0.1ms

Failure model:
- RateLimitedError: expected; the kernel falls back to a local observation
  and starts its cooldown
- CollaboratorError: any other transport/parse failure; logged by the
  kernel, never allowed to corrupt the store

Boundary Notes:
- Observation drafts become packets only inside the kernel
- The report generator sees the kind/tags/payload projection only
"""

from __future__ import annotations

import json
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx

from ..field.packets import InfoPacket
from .config import GeminiConfig
from .prompting import OBSERVATION_PROMPT, OBSERVATION_SCHEMA, format_report_prompt

logger = logging.getLogger(__name__)

NO_ANALYSIS_TEXT = "No analysis available."


class CollaboratorError(RuntimeError):
    """Raised when a remote generator fails for any reason other than quota."""


class RateLimitedError(CollaboratorError):
    """Raised when a remote generator reports quota exhaustion (HTTP 429 or RESOURCE_EXHAUSTED)."""


@dataclass(slots=True)
class ObservationDraft:
    """Raw observation before it is wrapped into a packet."""

    payload: Any
    embedding: Optional[Tuple[float, float]] = None
    tags: List[str] = field(default_factory=list)


class ObservationSource(Protocol):
    async def generate_observation(self) -> ObservationDraft:
        """Produce one observation draft; may raise RateLimitedError."""


class ReportSource(Protocol):
    async def analyze(self, packets: Sequence[InfoPacket]) -> str:
        """Return free-text analysis of recent packets; may raise RateLimitedError."""


# ------------------ local generators ------------------
def local_observation(step: int) -> ObservationDraft:
    """Deterministic lattice-phase sample used when no remote call is made."""

    theta = step * 0.1
    return ObservationDraft(
        payload={"signal": f"{math.sin(theta):.4f}", "mode": "Lattice-Phase"},
        embedding=(0.5 + math.sin(theta) * 0.2, 0.5 + math.cos(theta) * 0.2),
        tags=["sensor", "periodic"],
    )


def fallback_observation() -> ObservationDraft:
    """Substitute observation after a rate-limited remote call."""

    return ObservationDraft(payload={"info": "Rate limit"}, embedding=(0.5, 0.5), tags=["fallback"])


def _clip_unit(value: Any) -> float:
    return min(1.0, max(0.0, float(value)))


def parse_observation(text: str, rng: random.Random | None = None) -> ObservationDraft:
    """Parse a generator's JSON reply, tolerating missing or malformed fields."""

    rng = rng or random.Random()
    try:
        data = json.loads(text or "{}")
        if not isinstance(data, dict):
            raise ValueError("observation reply is not a JSON object")
        raw_embedding = data.get("embedding") or []
        if len(raw_embedding) >= 2:
            embedding = (_clip_unit(raw_embedding[0]), _clip_unit(raw_embedding[1]))
        else:
            embedding = (rng.random(), rng.random())
        tags = data.get("tags") or ["synthetic", "external"]
        return ObservationDraft(
            payload=data.get("payload") or {"info": "Random signal detected"},
            embedding=embedding,
            tags=[str(t) for t in tags],
        )
    except (ValueError, TypeError) as e:
        logger.warning(f"Unparsable observation reply, using fallback signal: {e}")
        return ObservationDraft(
            payload={"info": "Fallback signal"},
            embedding=(rng.random(), rng.random()),
            tags=["fallback"],
        )


# ------------------ Gemini transport ------------------
def _error_status(response: httpx.Response) -> Optional[str]:
    """`error.status` of a Google API error body, if the body has one."""
    try:
        error = response.json().get("error")
    except (ValueError, AttributeError):
        return None
    return error.get("status") if isinstance(error, dict) else None


class GeminiClient:
    """Minimal async client for the Generative Language generateContent call."""

    def __init__(self, config: GeminiConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    async def generate(self, prompt: str, *, generation_config: Dict[str, Any] | None = None) -> str:
        if not self.config.configured:
            raise CollaboratorError("Gemini API key not configured (set GEMINI_API_KEY)")

        url = f"{self.config.base_url}/models/{self.config.model}:generateContent"
        body: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers={"x-goog-api-key": self.config.api_key})
        except httpx.TimeoutException as e:
            raise CollaboratorError(f"Gemini request timed out after {self.config.timeout}s") from e
        except httpx.HTTPError as e:
            raise CollaboratorError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            if response.status_code == 429 or _error_status(response) == "RESOURCE_EXHAUSTED":
                raise RateLimitedError(f"Gemini quota exhausted (HTTP {response.status_code})")
            raise CollaboratorError(f"Gemini returned HTTP {response.status_code}")

        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CollaboratorError(f"Unexpected Gemini response shape: {e}") from e
        return "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))


class GeminiObservationSource:
    """Remote observation generator backed by Gemini JSON mode."""

    def __init__(self, client: GeminiClient, *, rng: random.Random | None = None) -> None:
        self._client = client
        self._rng = rng or random.Random()

    async def generate_observation(self) -> ObservationDraft:
        text = await self._client.generate(
            OBSERVATION_PROMPT,
            generation_config={"responseMimeType": "application/json", "responseSchema": OBSERVATION_SCHEMA},
        )
        return parse_observation(text, self._rng)


class GeminiReportSource:
    """Remote pattern-report generator backed by Gemini."""

    def __init__(self, client: GeminiClient) -> None:
        self._client = client

    async def analyze(self, packets: Sequence[InfoPacket]) -> str:
        text = await self._client.generate(format_report_prompt(packets))
        return text.strip() or NO_ANALYSIS_TEXT


__all__ = [
    "CollaboratorError",
    "GeminiClient",
    "GeminiObservationSource",
    "GeminiReportSource",
    "NO_ANALYSIS_TEXT",
    "ObservationDraft",
    "ObservationSource",
    "RateLimitedError",
    "ReportSource",
    "fallback_observation",
    "local_observation",
    "parse_observation",
]
