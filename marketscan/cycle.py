"""Polling loop shared by the scanner and the signal evaluator."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger("marketscan.cycle")


class CycleRunner:
    """Runs ``_run_cycle`` repeatedly, never two cycles at once.

    Subclasses implement ``_run_cycle`` and set ``name``.
    """

    name = "cycle"

    def __init__(self) -> None:
        self._running: bool = False
        self._in_progress: bool = False
        self._cycle_count: int = 0

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        self._running = False

    async def run_once(self, utc_now: Optional[datetime] = None) -> dict:
        """Execute one cycle, or skip it if the previous one is still running."""
        if self._in_progress:
            logger.warning("%s cycle still running, skipping", self.name)
            return {"action": "skipped", "reason": "cycle_in_progress"}

        self._in_progress = True
        try:
            self._cycle_count += 1
            return await self._run_cycle(utc_now)
        finally:
            self._in_progress = False

    async def _run_cycle(self, utc_now: Optional[datetime] = None) -> dict:
        raise NotImplementedError

    async def run(self, poll_interval: int = 60, max_cycles: int = 0) -> list[dict]:
        """Run cycles until stopped.

        Args:
            poll_interval: Seconds between cycles.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts when bounded by ``max_cycles``;
            an unbounded run keeps only the last result.
        """
        self._running = True
        results: list[dict] = []
        cycle = 0

        while self._running:
            cycle += 1
            try:
                result = await self.run_once()
                logger.info("%s cycle %d: %s", self.name, cycle, result.get("action", "unknown"))
            except Exception as exc:
                logger.error("%s cycle %d error: %s", self.name, cycle, exc)
                result = {"action": "error", "reason": str(exc)}

            if max_cycles > 0:
                results.append(result)
            else:
                results = [result]

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep, checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        return results
