"""Signal evaluator — advances open signals against new bars.

Pending signals are checked for entry or expiry against the last 50 bars,
triggered ones for SL / TP / timeout against the last 150.  Every
transition is persisted before it is announced.
"""

import logging
from datetime import datetime
from typing import Optional

from marketscan.config import Config
from marketscan.cycle import CycleRunner
from marketscan.errors import (
    InsufficientDataError,
    LifecycleInvariantViolation,
    MarketScanError,
)
from marketscan.lifecycle.models import PENDING, TRIGGERED, Signal, Transition
from marketscan.lifecycle.tracker import TradeLifecycleTracker
from marketscan.market.models import validate_bars
from marketscan.market.twelvedata import BarSource
from marketscan.notify.telegram import Notifier
from marketscan.repos.signal_repo import SignalRepo

logger = logging.getLogger("marketscan.evaluator")

PENDING_BAR_COUNT = 50
TRIGGERED_BAR_COUNT = 150


class SignalEvaluator(CycleRunner):
    """Checks every open signal once per cycle."""

    name = "evaluate"

    def __init__(
        self,
        config: Config,
        bar_source: BarSource,
        signal_repo: SignalRepo,
        notifier: Notifier,
        tracker: Optional[TradeLifecycleTracker] = None,
    ) -> None:
        super().__init__()
        self._bars = bar_source
        self._repo = signal_repo
        self._notifier = notifier
        self._tracker = tracker or TradeLifecycleTracker(
            expiration_candles=config.expiration_candles,
            timeout_candles=config.timeout_candles,
        )

    async def _run_cycle(self, utc_now: Optional[datetime] = None) -> dict:
        summary = {"action": "evaluated", "checked": 0, "transitions": 0, "errors": 0}

        pending = self._repo.get_signals_by_status(PENDING)
        triggered = self._repo.get_signals_by_status(TRIGGERED)
        logger.info(
            "Evaluating %d pending and %d triggered signals",
            len(pending), len(triggered),
        )

        work = [(s, PENDING_BAR_COUNT) for s in pending] + [
            (s, TRIGGERED_BAR_COUNT) for s in triggered
        ]
        for signal, bar_count in work:
            summary["checked"] += 1
            try:
                summary["transitions"] += await self._evaluate(signal, bar_count)
            except InsufficientDataError as exc:
                logger.info("Signal %s skipped: %s", signal.id, exc)
            except LifecycleInvariantViolation as exc:
                logger.critical("Lifecycle invariant violated for signal %s: %s", signal.id, exc)
                summary["errors"] += 1
            except MarketScanError as exc:
                logger.warning("Signal %s not evaluated: %s", signal.id, exc)
                summary["errors"] += 1
            except Exception as exc:
                logger.error("Failed to evaluate signal %s: %s", signal.id, exc)
                summary["errors"] += 1

        return summary

    async def _evaluate(self, signal: Signal, bar_count: int) -> int:
        bars = await self._bars.fetch_bars(signal.symbol, signal.timeframe, bar_count)
        validate_bars(bars)

        transitions = self._tracker.advance(signal, bars)
        for transition in transitions:
            self._repo.update_signal(transition.signal)
            await self._announce(transition)
        return len(transitions)

    async def _announce(self, transition: Transition) -> None:
        signal = transition.signal
        handlers = {
            "triggered": self._notifier.notify_triggered,
            "expired": self._notifier.notify_expired,
            "closed": self._notifier.notify_closed,
        }
        try:
            await handlers[transition.event](signal)
        except Exception as exc:
            logger.error(
                "Notification failed for signal %s (%s): %s",
                signal.id, transition.event, exc,
            )
