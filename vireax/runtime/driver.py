"""
Kernel Driver - External scheduler for FieldKernel cycles

WHAT: asyncio loop issuing one kernel cycle per interval plus a 1s ticker
WHERE: vireax/runtime/driver.py - control surface (start/stop/ignite)
WHO: scripts/run_kernel.py and any embedding application
TIME: Default interval 1.1s between cycle starts

The driver awaits each cycle before scheduling the next, so at most one
cycle is ever in flight. stop() ends the loop after the current cycle;
it never interrupts a cycle. Failed cycles are logged and the loop goes on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .kernel import CycleReport, FieldKernel

logger = logging.getLogger(__name__)

CycleCallback = Callable[[CycleReport], Optional[Awaitable[None]]]


class KernelDriver:
    """Start/stop control around a FieldKernel."""

    def __init__(
        self,
        kernel: FieldKernel,
        *,
        interval: float = 1.1,
        tick_seconds: float = 1.0,
        on_cycle: CycleCallback | None = None,
    ) -> None:
        self.kernel = kernel
        self.interval = interval
        self.tick_seconds = tick_seconds
        self._on_cycle = on_cycle
        self._running = False
        self._failures: List[BaseException] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def failures(self) -> List[BaseException]:
        return list(self._failures)

    def stop(self) -> None:
        self._running = False

    def ignite(self) -> bool:
        """Ignition is only accepted while the loop is running."""
        if not self._running:
            return False
        return self.kernel.ignite()

    async def _ticker(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.kernel.cooldown.tick()

    async def run(self, *, max_steps: int | None = None) -> int:
        """Run cycles until stop() or max_steps attempts; returns completed cycle count."""

        self._running = True
        attempts = 0
        completed = 0
        ticker = asyncio.create_task(self._ticker())
        logger.info(f"Kernel driver started (interval={self.interval}s, max_steps={max_steps})")
        try:
            while self._running and (max_steps is None or attempts < max_steps):
                attempts += 1
                try:
                    report = await self.kernel.step()
                except Exception as e:  # noqa: BLE001
                    logger.error(f"Kernel cycle failed: {e}")
                    self._failures.append(e)
                else:
                    completed += 1
                    if self._on_cycle is not None:
                        result = self._on_cycle(report)
                        if asyncio.iscoroutine(result):
                            await result
                if self._running and (max_steps is None or attempts < max_steps):
                    await asyncio.sleep(self.interval)
        finally:
            self._running = False
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
            logger.info(f"Kernel driver stopped after {completed} cycles")
        return completed


__all__ = ["KernelDriver"]
