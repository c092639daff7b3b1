#!/usr/bin/env python3
"""
Module: scripts/run_kernel.py
Summary: Run the Vireax observer kernel loop and print the per-cycle gauge.
Inputs: VIREAX_* kernel envs, GEMINI_* envs (only with --remote); CLI flags
Outputs: One console line per cycle; optional JSONL health records
Related: vireax/runtime/*, vireax/field/*
Stability: beta; the packet store lives in memory for the session only

Usage:
  python scripts/run_kernel.py --steps 50 --interval 0.2
  python scripts/run_kernel.py --steps 200 --ignite-at 40 --metrics-log runs/health.jsonl
  GEMINI_API_KEY=... python scripts/run_kernel.py --remote --report

Environment:
  - VIREAX_SEED, VIREAX_ANCHOR_INTERVAL, VIREAX_COOLDOWN_SECONDS, ...
  - GEMINI_API_KEY, GEMINI_MODEL, GEMINI_TIMEOUT
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vireax.logging.health import log_health
from vireax.runtime import (
    CycleReport,
    FieldKernel,
    GeminiClient,
    GeminiConfig,
    GeminiObservationSource,
    GeminiReportSource,
    KernelConfig,
    KernelDriver,
    LoggingTelemetryClient,
    NoOpTelemetryClient,
)

logger = logging.getLogger("vireax.run_kernel")


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the Vireax observer kernel")
    p.add_argument("--steps", type=int, default=100, help="Number of cycles to run (0 = until Ctrl-C)")
    p.add_argument("--interval", type=float, default=1.1, help="Seconds between cycle starts")
    p.add_argument("--seed", type=int, default=None, help="Seed for the kernel RNG (overrides VIREAX_SEED)")
    p.add_argument("--ignite-at", type=int, default=None, help="Trigger ignition after this many cycles")
    p.add_argument("--remote", action="store_true", help="Enable Gemini observation/report collaborators")
    p.add_argument("--report", action="store_true", help="Request a pattern report after the run")
    p.add_argument("--metrics-log", default=None, help="Append per-cycle health records to this JSONL file")
    p.add_argument("--latest", type=int, default=5, help="Print the N latest packets at the end")
    p.add_argument("--telemetry", action="store_true", help="Log telemetry spans")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return p.parse_args()


def build_kernel(args: argparse.Namespace) -> FieldKernel:
    config = KernelConfig.from_env()
    if args.seed is not None:
        config.seed = args.seed

    observation_source = None
    report_source = None
    if args.remote:
        gemini = GeminiConfig.from_env()
        if not gemini.configured:
            logger.warning("--remote given but GEMINI_API_KEY is not set; running local-only")
        else:
            client = GeminiClient(gemini)
            observation_source = GeminiObservationSource(client)
            report_source = GeminiReportSource(client)

    telemetry = LoggingTelemetryClient() if args.telemetry else NoOpTelemetryClient()
    return FieldKernel(
        config=config,
        observation_source=observation_source,
        report_source=report_source,
        telemetry=telemetry,
    )


def format_cycle(report: CycleReport, size: int) -> str:
    m = report.metrics
    flags = []
    if report.igniting:
        flags.append("IGN")
    if report.anchor is not None:
        flags.append("ANCHOR")
    if report.produced:
        flags.append(f"+{len(report.produced)}sum")
    return (
        f"T+{report.step:06d} src={report.source:<8} eps={m.innovation_error:.4f} "
        f"Neff={m.diversity:.2f} R={m.recursion_dominance:.2f} V={m.volatility:.3f} "
        f"H={m.health * 100:5.1f}% arousal={report.self_vars.get('arousal', 0.0):.3f} "
        f"pkts={size} {' '.join(flags)}"
    )


async def run(args: argparse.Namespace) -> int:
    kernel = build_kernel(args)
    metrics_path = Path(args.metrics_log) if args.metrics_log else None
    driver: KernelDriver

    def on_cycle(report: CycleReport) -> None:
        print(format_cycle(report, kernel.store.size()))
        if metrics_path is not None:
            log_health(
                label=f"cycle-{report.step}",
                snapshot=report.metrics,
                weights=kernel.config.health,
                store_size=kernel.store.size(),
                output_path=metrics_path,
            )
        if args.ignite_at is not None and report.step + 1 == args.ignite_at:
            driver.ignite()

    driver = KernelDriver(kernel, interval=args.interval, on_cycle=on_cycle)
    try:
        completed = await driver.run(max_steps=args.steps or None)
    except asyncio.CancelledError:
        driver.stop()
        raise

    if args.report:
        text = await kernel.analyze()
        print("\n=== Kernel Pattern Insight ===")
        print(text or "(no report: collaborator unavailable or cooling down)")

    if args.latest > 0:
        print(f"\n=== Latest {args.latest} packets ===")
        for packet in kernel.store.get_latest(args.latest):
            print(f"{packet.id[:6]} {packet.kind_name:<12} conf={packet.confidence:.2f} tags={','.join(packet.tags)}")

    return 0 if completed or not args.steps else 1


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nHalted.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
