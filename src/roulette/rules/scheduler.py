"""Scheduled problem detection for Roulette.

Runs ProblemDetector in a background asyncio loop every
``sweep_interval_seconds``. Errors in one sweep are logged and the loop
carries on; stopping cancels the loop between or during sweeps, which is
safe because every assignment is evaluated in its own transaction.
"""

from __future__ import annotations

import asyncio

import structlog

from roulette.config import RulesConfig
from roulette.rules.engine import DetectionStats, ProblemDetector

logger = structlog.get_logger(__name__)


class ProblemSweepScheduler:
    """Background loop around ProblemDetector.

    Attributes:
        detector: Detector run on every tick
        config: Sweep interval and enable flag
        last_stats: Counters of the most recent completed sweep
    """

    def __init__(self, detector: ProblemDetector, config: RulesConfig | None = None) -> None:
        self.detector = detector
        self.config = config or RulesConfig()
        self.last_stats: DetectionStats | None = None
        self._running = False
        self._sweep_task: asyncio.Task[None] | None = None
        self._logger = logger.bind(component="ProblemSweepScheduler")

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> DetectionStats:
        """Run a single sweep immediately."""
        stats = await self.detector.run()
        self.last_stats = stats
        return stats

    async def start(self) -> None:
        """Start the sweep loop.

        If already running or disabled by configuration, this is a no-op.
        """
        if not self.config.enabled:
            self._logger.info("problem_sweep_disabled")
            return

        if self._running:
            self._logger.warning("problem_sweep_already_running")
            return

        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self._logger.info(
            "problem_sweep_started",
            interval_seconds=self.config.sweep_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to finish."""
        if not self._running:
            self._logger.warning("problem_sweep_not_running")
            return

        self._running = False

        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        self._logger.info("problem_sweep_stopped")

    async def _sweep_loop(self) -> None:
        """Run sweeps until stop() is called."""
        while self._running:
            try:
                await self.run_once()
                await asyncio.sleep(self.config.sweep_interval_seconds)
            except asyncio.CancelledError:
                self._logger.info("problem_sweep_cancelled")
                break
            except Exception as e:
                self._logger.error(
                    "problem_sweep_error",
                    error=str(e),
                    exc_info=True,
                )
                await asyncio.sleep(self.config.sweep_interval_seconds)
