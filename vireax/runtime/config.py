"""
Kernel Configuration - Defaults and environment overrides

WHAT: Dataclass configs for the cycle kernel and the Gemini collaborators
WHERE: vireax/runtime/config.py - configuration layer
WHO: scripts/run_kernel.py, FieldKernel, Gemini clients
TIME: Resolved once at session start

Environment:
  - VIREAX_ANCHOR_INTERVAL, VIREAX_LATEST_WINDOW, VIREAX_REPORT_WINDOW
  - VIREAX_COOLDOWN_SECONDS, VIREAX_IGNITION_STEPS, VIREAX_IGNITION_PROBES
  - VIREAX_REMOTE_PROBABILITY, VIREAX_IGNITION_REMOTE_PROBABILITY
  - VIREAX_REFERENCE_KIND, VIREAX_SEED
  - VIREAX_HEALTH_ALPHA / _BETA / _GAMMA / _DELTA / _N0
  - GEMINI_API_KEY (or API_KEY), GEMINI_MODEL, GEMINI_BASE_URL, GEMINI_TIMEOUT
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from ..field.metrics import HealthWeights

DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    return int(raw) if raw else default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    return float(raw) if raw else default


@dataclass(slots=True)
class KernelConfig:
    """Cycle kernel settings; see from_env for the VIREAX_* overrides."""

    anchor_interval: int = 5
    latest_window: int = 20
    report_window: int = 30
    cooldown_seconds: int = 60
    ignition_steps: int = 15
    ignition_probes: int = 3
    remote_probability: float = 0.01
    ignition_remote_probability: float = 0.10
    observation_confidence: float = 0.85
    reference_kind: str = "summary"
    diversity_window: int = 32
    recursion_window: int = 32
    volatility_window: int = 10
    health: HealthWeights = field(default_factory=HealthWeights)
    seed: Optional[int] = None

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "KernelConfig":
        env = os.environ if env is None else env
        defaults = KernelConfig()
        seed_raw = env.get("VIREAX_SEED", "").strip()
        return KernelConfig(
            anchor_interval=_env_int(env, "VIREAX_ANCHOR_INTERVAL", defaults.anchor_interval),
            latest_window=_env_int(env, "VIREAX_LATEST_WINDOW", defaults.latest_window),
            report_window=_env_int(env, "VIREAX_REPORT_WINDOW", defaults.report_window),
            cooldown_seconds=_env_int(env, "VIREAX_COOLDOWN_SECONDS", defaults.cooldown_seconds),
            ignition_steps=_env_int(env, "VIREAX_IGNITION_STEPS", defaults.ignition_steps),
            ignition_probes=_env_int(env, "VIREAX_IGNITION_PROBES", defaults.ignition_probes),
            remote_probability=_env_float(env, "VIREAX_REMOTE_PROBABILITY", defaults.remote_probability),
            ignition_remote_probability=_env_float(
                env, "VIREAX_IGNITION_REMOTE_PROBABILITY", defaults.ignition_remote_probability
            ),
            reference_kind=env.get("VIREAX_REFERENCE_KIND", "").strip() or defaults.reference_kind,
            health=HealthWeights(
                alpha=_env_float(env, "VIREAX_HEALTH_ALPHA", defaults.health.alpha),
                beta=_env_float(env, "VIREAX_HEALTH_BETA", defaults.health.beta),
                gamma=_env_float(env, "VIREAX_HEALTH_GAMMA", defaults.health.gamma),
                delta=_env_float(env, "VIREAX_HEALTH_DELTA", defaults.health.delta),
                n0=_env_float(env, "VIREAX_HEALTH_N0", defaults.health.n0),
            ),
            seed=int(seed_raw) if seed_raw else None,
        )


@dataclass(slots=True)
class GeminiConfig:
    """Connection settings for the remote observation/report generators."""

    api_key: str = ""
    model: str = DEFAULT_GEMINI_MODEL
    base_url: str = DEFAULT_GEMINI_BASE_URL
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "GeminiConfig":
        env = os.environ if env is None else env
        return GeminiConfig(
            api_key=env.get("GEMINI_API_KEY", "") or env.get("API_KEY", ""),
            model=env.get("GEMINI_MODEL", "") or DEFAULT_GEMINI_MODEL,
            base_url=(env.get("GEMINI_BASE_URL", "") or DEFAULT_GEMINI_BASE_URL).rstrip("/"),
            timeout=_env_float(env, "GEMINI_TIMEOUT", 30.0),
        )


__all__ = ["GeminiConfig", "KernelConfig"]
