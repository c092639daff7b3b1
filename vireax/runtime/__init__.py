"""
Runtime Kernel Module

WHAT: Cycle kernel, driver, collaborators and telemetry above the field core
WHERE: vireax/runtime/ - orchestration layer above vireax/field/
WHO: Applications and scripts stepping the simulated observer
TIME: One cycle per driver interval (default 1.1s)

Provides the explicit step function that turns observations into packets,
computes the gauge, runs eligible operators and periodically records a
self-model snapshot. Remote generators (Gemini) are optional and gated by a
quota cooldown.

Boundary Notes:
- The store handle is created by the kernel (or passed in) and never global
- Rendering/presentation only reads KernelSnapshot / CycleReport
"""

from .collaborators import (  # noqa: F401
    CollaboratorError,
    GeminiClient,
    GeminiObservationSource,
    GeminiReportSource,
    ObservationDraft,
    ObservationSource,
    RateLimitedError,
    ReportSource,
)
from .config import GeminiConfig, KernelConfig  # noqa: F401
from .driver import KernelDriver  # noqa: F401
from .kernel import (  # noqa: F401
    Cooldown,
    CycleInProgressError,
    CycleReport,
    FieldKernel,
    Ignition,
    KernelSnapshot,
    SelfModel,
)
from .telemetry import (  # noqa: F401
    KernelSpan,
    LoggingTelemetryClient,
    NoOpTelemetryClient,
    RecordingTelemetryClient,
    SpanRecord,
    TelemetryClient,
)

__all__ = [
    "CollaboratorError",
    "Cooldown",
    "CycleInProgressError",
    "CycleReport",
    "FieldKernel",
    "GeminiClient",
    "GeminiConfig",
    "GeminiObservationSource",
    "GeminiReportSource",
    "Ignition",
    "KernelConfig",
    "KernelDriver",
    "KernelSnapshot",
    "KernelSpan",
    "LoggingTelemetryClient",
    "NoOpTelemetryClient",
    "ObservationDraft",
    "ObservationSource",
    "RateLimitedError",
    "RecordingTelemetryClient",
    "ReportSource",
    "SelfModel",
    "SpanRecord",
    "TelemetryClient",
]
