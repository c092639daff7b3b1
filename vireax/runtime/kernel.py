"""
Field Kernel - One explicit step function per observation cycle

WHAT: Cycle driver tying observation, store, metrics, operators and self-model
WHERE: vireax/runtime/kernel.py - top of the runtime stack
WHO: KernelDriver (periodic loop), scripts/run_kernel.py, tests
TIME: Local cycles <5ms; remote observation cycles bounded by the collaborator

Cycle (no step skipped):
    Observe -> Insert -> ComputeMetrics -> CheckOperators -> RunEligibleOperators
    -> (every Kth step) EmitSelfModelSnapshot -> ExposeSnapshot

The kernel holds no timers. Cooldown seconds are ticked by the driver's
wall-clock ticker; ignition counts down once per cycle.

Boundary Notes:
- Only the observation and report collaborators can suspend a cycle
- RateLimitedError degrades to a fallback observation plus cooldown
- At most one cycle is in flight; a concurrent step() is rejected
- Packets committed before a failure stay committed (every put is idempotent)
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..field.metrics import MetricsEngine, MetricsSnapshot
from ..field.operators import OpContext, OperatorPipeline, OpResult
from ..field.packets import InfoPacket, PacketKind, create_packet
from ..field.store import InMemoryPacketStore, PacketStore
from .collaborators import (
    ObservationDraft,
    ObservationSource,
    RateLimitedError,
    ReportSource,
    fallback_observation,
    local_observation,
)
from .config import KernelConfig
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)

REPORT_FAILED_TEXT = "Cognitive synchronization failed."
DEFAULT_IDENTITY = "VIREAX-KERNEL-MK1"


class CycleInProgressError(RuntimeError):
    """Raised when step() is called while another cycle is still running."""


class Cooldown:
    """Seconds-based gate on remote calls, ticked by an external clock."""

    def __init__(self) -> None:
        self._remaining = 0

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def active(self) -> bool:
        return self._remaining > 0

    def start(self, seconds: int) -> None:
        logger.warning(f"Quota depleted: entering {seconds}s cooldown")
        self._remaining = max(self._remaining, int(seconds))

    def tick(self) -> int:
        if self._remaining > 0:
            self._remaining -= 1
        return self._remaining


class Ignition:
    """Bounded number of cycles during which hierarchical compression is unlocked."""

    def __init__(self) -> None:
        self._remaining = 0

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def active(self) -> bool:
        return self._remaining > 0

    def arm(self, steps: int) -> bool:
        if self.active:
            return False
        self._remaining = int(steps)
        return True

    def tick(self) -> int:
        if self._remaining > 0:
            self._remaining -= 1
        return self._remaining


@dataclass(slots=True)
class SelfModel:
    """Kernel self-state updated by the arousal control law."""

    identity: str = DEFAULT_IDENTITY
    vars: Dict[str, float] = field(
        default_factory=lambda: {"arousal": 0.35, "curiosity": 0.5, "stability": 1.0, "phase_offset": 0.0}
    )
    self_packet_id: Optional[str] = None
    recursion_stall: int = 0

    def update(self, metrics: MetricsSnapshot, *, igniting: bool) -> float:
        """Apply one step of the arousal law; returns the new arousal."""

        arousal = self.vars.get("arousal", 0.35)
        if igniting:
            arousal = 0.50
        else:
            s_t = 1.0 - metrics.coherence
            delta = (
                0.10 * metrics.innovation_error
                + 0.05 * metrics.volatility
                - 0.12 * s_t
                - 0.15 * metrics.recursion_dominance
            )
            arousal = max(0.20, min(0.70, arousal + delta))
            self.recursion_stall = self.recursion_stall + 1 if metrics.recursion_dominance > 0.65 else 0
            if self.recursion_stall > 5:
                arousal *= 0.8

        self.vars["arousal"] = arousal
        self.vars["phase_offset"] = (self.vars.get("phase_offset", 0.0) + 0.1) % (2 * math.pi)
        return arousal


@dataclass(slots=True)
class CycleReport:
    """What one completed cycle exposes to presentation."""

    step: int
    observation: InfoPacket
    source: str
    metrics: MetricsSnapshot
    op_results: List[OpResult] = field(default_factory=list)
    anchor: Optional[InfoPacket] = None
    latest: List[InfoPacket] = field(default_factory=list)
    self_vars: Dict[str, float] = field(default_factory=dict)
    igniting: bool = False

    @property
    def produced(self) -> List[InfoPacket]:
        return [p for r in self.op_results for p in r.produced]


@dataclass(slots=True)
class KernelSnapshot:
    """Read-only view for the presentation collaborator."""

    step: int
    size: int
    latest: List[InfoPacket]
    metrics: MetricsSnapshot
    self_vars: Dict[str, float]
    cooldown_remaining: int
    ignition_remaining: int
    last_report: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "size": self.size,
            "latest": [p.model_dump(mode="json") for p in self.latest],
            "metrics": self.metrics.as_dict(),
            "self_vars": dict(self.self_vars),
            "cooldown_remaining": self.cooldown_remaining,
            "ignition_remaining": self.ignition_remaining,
            "last_report": self.last_report,
        }


class FieldKernel:
    """Owns the session's store handle and runs one cycle per `step()` call."""

    def __init__(
        self,
        *,
        store: PacketStore | None = None,
        config: KernelConfig | None = None,
        observation_source: ObservationSource | None = None,
        report_source: ReportSource | None = None,
        pipeline: OperatorPipeline | None = None,
        telemetry: TelemetryClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or KernelConfig()
        self._store = store if store is not None else InMemoryPacketStore()
        self._metrics = MetricsEngine(
            self._store,
            reference_kind=self.config.reference_kind,
            weights=self.config.health,
        )
        self._pipeline = pipeline or OperatorPipeline(self._store)
        self._observation_source = observation_source
        self._report_source = report_source
        self._telemetry = telemetry or NoOpTelemetryClient()
        self._rng = rng or random.Random(self.config.seed)

        self.cooldown = Cooldown()
        self.ignition = Ignition()
        self.self_model = SelfModel()

        self._step = 0
        self._in_flight = False
        self._pending_ignition = False
        self._last_metrics = MetricsSnapshot()
        self._last_report: Optional[str] = None

    # ---------------------- accessors ----------------------
    @property
    def store(self) -> PacketStore:
        return self._store

    @property
    def metrics_engine(self) -> MetricsEngine:
        return self._metrics

    @property
    def pipeline(self) -> OperatorPipeline:
        return self._pipeline

    @property
    def step_count(self) -> int:
        return self._step

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_metrics(self) -> MetricsSnapshot:
        return self._last_metrics

    @property
    def last_report(self) -> Optional[str]:
        return self._last_report

    # ---------------------- controls -----------------------
    def ignite(self) -> bool:
        """Arm ignition; probes are injected now, or after the in-flight cycle."""

        if self.ignition.active or self._pending_ignition:
            return False
        if self._in_flight:
            self._pending_ignition = True
            return True
        return self._apply_ignition()

    def _apply_ignition(self) -> bool:
        if not self.ignition.arm(self.config.ignition_steps):
            return False
        logger.warning("Ignition: resyncing observer kernel")
        self.self_model.vars.update({"arousal": 0.50, "curiosity": 0.85})
        for i in range(self.config.ignition_probes):
            self._store.put(
                create_packet(
                    kind=PacketKind.OBSERVATION,
                    payload={"type": "vireax_probe", "id": i},
                    embedding=(self._rng.random(), self._rng.random()),
                    tags=["quarantine", "curiosity", "vireax_initiated", "observation"],
                    confidence=0.20,
                    meta={"ignition": True},
                )
            )
        return True

    # ---------------------- cycle --------------------------
    async def step(self) -> CycleReport:
        """Run one full cycle to completion."""

        if self._in_flight:
            raise CycleInProgressError("A kernel cycle is already in progress")
        self._in_flight = True
        try:
            if self._pending_ignition:
                self._pending_ignition = False
                self._apply_ignition()
            step = self._step
            self._step += 1
            with self._telemetry.span("kernel.cycle", step=step) as span:
                report = await self._run_cycle(step)
                span.note(
                    source=report.source,
                    store_size=self._store.size(),
                    health=report.metrics.health,
                    produced=len(report.produced),
                )
            return report
        finally:
            self._in_flight = False

    async def _run_cycle(self, step: int) -> CycleReport:
        igniting = self.ignition.active

        # Observe
        draft, source = await self._observe(step, igniting)

        # Insert
        tags = list(draft.tags)
        if "observation" not in tags:
            tags.append("observation")
        obs = create_packet(
            kind=PacketKind.OBSERVATION,
            payload=draft.payload,
            embedding=draft.embedding,
            tags=tags,
            confidence=self.config.observation_confidence,
            meta={"step": step, "source": source},
        )
        self._store.put(obs)

        # ComputeMetrics
        phase_noise = 0.05 + self._rng.random() * 0.05
        metrics = self._metrics.snapshot(
            obs,
            phase_noise=phase_noise,
            step=step,
            diversity_window=self.config.diversity_window,
            recursion_window=self.config.recursion_window,
            volatility_window=self.config.volatility_window,
        )
        self._last_metrics = metrics
        arousal = self.self_model.update(metrics, igniting=igniting)
        if igniting:
            self.ignition.tick()

        # CheckOperators -> RunEligibleOperators
        ctx = OpContext(step=step, ignition=igniting, budget={"entropy": 10.0}, meta={"ignition": igniting})
        op_results = self._pipeline.run_eligible(ctx)

        # EmitSelfModelSnapshot
        anchor = None
        if self.config.anchor_interval > 0 and step % self.config.anchor_interval == 0:
            anchor = self._emit_self_model(obs, metrics, arousal, step)

        # ExposeSnapshot
        return CycleReport(
            step=step,
            observation=obs,
            source=source,
            metrics=metrics,
            op_results=op_results,
            anchor=anchor,
            latest=self._store.get_latest(self.config.latest_window),
            self_vars=dict(self.self_model.vars),
            igniting=igniting,
        )

    async def _observe(self, step: int, igniting: bool) -> tuple[ObservationDraft, str]:
        probability = self.config.ignition_remote_probability if igniting else self.config.remote_probability
        wants_remote = self._observation_source is not None and self._rng.random() < probability
        if not wants_remote:
            return local_observation(step), "local"
        if self.cooldown.active:
            logger.info(f"Remote observation skipped at step {step}: cooldown {self.cooldown.remaining}s")
            return local_observation(step), "local"

        logger.info("Grounded probe: syncing with external modality")
        try:
            with self._telemetry.span("kernel.observe_remote", step=step):
                draft = await self._observation_source.generate_observation()
        except RateLimitedError as e:
            logger.warning(f"Observation collaborator rate limited at step {step}: {e}")
            self.cooldown.start(self.config.cooldown_seconds)
            return fallback_observation(), "fallback"
        return draft, "remote"

    def _emit_self_model(
        self, obs: InfoPacket, metrics: MetricsSnapshot, arousal: float, step: int
    ) -> InfoPacket:
        anchor = create_packet(
            kind=PacketKind.SELF_MODEL,
            payload={
                "status": "stabilized",
                "identity": self.self_model.identity,
                "policy": {"arousal": arousal},
                "health": metrics.health,
            },
            embedding=obs.embedding,
            tags=["self_model", "kernel", "anchor"],
            confidence=1.0,
            parents=[obs.id],
            meta={"step": step, "health": metrics.health},
        )
        self._store.put(anchor)
        self.self_model.self_packet_id = anchor.id
        return anchor

    # ---------------------- reporting ----------------------
    async def analyze(self) -> Optional[str]:
        """Ask the report collaborator about recent packets; never touches the store."""

        if self._report_source is None:
            logger.info("No report collaborator configured; skipping analysis")
            return None
        if self.cooldown.active:
            logger.info(f"Analysis skipped: cooldown {self.cooldown.remaining}s")
            return None

        recent = self._store.get_latest(self.config.report_window)
        try:
            with self._telemetry.span("kernel.report", step=self._step) as span:
                text = await self._report_source.analyze(recent)
                span.note(packets=len(recent), response_chars=len(text))
        except RateLimitedError as e:
            logger.warning(f"Report collaborator rate limited: {e}")
            self.cooldown.start(self.config.cooldown_seconds)
            return None
        except Exception as e:  # noqa: BLE001
            logger.error(f"Report collaborator failed: {e}")
            text = REPORT_FAILED_TEXT

        self._last_report = text
        return text

    def snapshot(self) -> KernelSnapshot:
        return KernelSnapshot(
            step=self._step,
            size=self._store.size(),
            latest=self._store.get_latest(self.config.latest_window),
            metrics=self._last_metrics,
            self_vars=dict(self.self_model.vars),
            cooldown_remaining=self.cooldown.remaining,
            ignition_remaining=self.ignition.remaining,
            last_report=self._last_report,
        )


__all__ = [
    "Cooldown",
    "CycleInProgressError",
    "CycleReport",
    "FieldKernel",
    "Ignition",
    "KernelSnapshot",
    "REPORT_FAILED_TEXT",
    "SelfModel",
]
