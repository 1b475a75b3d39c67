"""Market scanner — turns fresh bars into persisted signals.

One cycle walks every configured (symbol, timeframe) pair in sequence:

    fetch → validate → compose state → per mode: filter → decide →
    confidence gate → validate proposal → persist → notify
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from marketscan.analysis.candidate_filter import apply_candidate_filter
from marketscan.analysis.market_state import compose_market_state
from marketscan.analysis.models import MarketState
from marketscan.config import Config
from marketscan.cycle import CycleRunner
from marketscan.decision.base import DecisionProvider, TradeProposal
from marketscan.decision.validator import validate_proposal
from marketscan.errors import (
    InsufficientDataError,
    InvalidBarError,
    MarketScanError,
    ProposalValidationError,
)
from marketscan.lifecycle.models import PENDING, Signal
from marketscan.market.models import validate_bars
from marketscan.market.twelvedata import BarSource
from marketscan.notify.telegram import Notifier
from marketscan.repos.signal_repo import SignalRepo

logger = logging.getLogger("marketscan.scanner")


class Scanner(CycleRunner):
    """Scans the configured universe for new trade signals."""

    name = "scan"

    def __init__(
        self,
        config: Config,
        bar_source: BarSource,
        signal_repo: SignalRepo,
        notifier: Notifier,
        decision_provider: Optional[DecisionProvider] = None,
    ) -> None:
        super().__init__()
        self._config = config
        self._bars = bar_source
        self._repo = signal_repo
        self._notifier = notifier
        self._decision = decision_provider

    async def _run_cycle(self, utc_now: Optional[datetime] = None) -> dict:
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        summary = {"action": "scanned", "pairs": 0, "candidates": 0, "signals": 0, "errors": 0}
        for symbol in self._config.symbols:
            for timeframe in self._config.timeframes:
                summary["pairs"] += 1
                try:
                    candidates, signals = await self._scan_pair(symbol, timeframe, utc_now)
                except InsufficientDataError as exc:
                    logger.info("Skipping %s %s: %s", symbol, timeframe, exc)
                    continue
                except InvalidBarError as exc:
                    logger.warning("Rejected bars for %s %s: %s", symbol, timeframe, exc)
                    summary["errors"] += 1
                    continue
                except Exception as exc:
                    logger.error("Scan failed for %s %s: %s", symbol, timeframe, exc)
                    summary["errors"] += 1
                    continue
                summary["candidates"] += candidates
                summary["signals"] += signals

        logger.info(
            "Scan complete: %d pairs, %d candidates, %d signals, %d errors",
            summary["pairs"], summary["candidates"], summary["signals"], summary["errors"],
        )
        return summary

    async def _scan_pair(
        self, symbol: str, timeframe: str, utc_now: datetime
    ) -> tuple[int, int]:
        """Scan one pair; returns ``(candidates, signals_created)``."""
        bars = await self._bars.fetch_bars(symbol, timeframe, self._config.candle_count)
        validate_bars(bars)
        state = compose_market_state(
            bars,
            fast_period=self._config.fast_ma_period,
            slow_period=self._config.slow_ma_period,
            symbol=symbol,
            timeframe=timeframe,
        )
        logger.debug(
            "%s %s: trend=%s/%s price=%s atr=%s rsi=%s",
            symbol, timeframe, state.trend.direction, state.trend.strength,
            state.current_price, state.atr, state.rsi,
        )

        candidates = signals = 0
        for mode in self._config.modes:
            result = apply_candidate_filter(bars, state, mode)
            if not result.is_candidate:
                if result.reason:
                    logger.debug("%s %s [%s] rejected: %s", symbol, timeframe, mode, result.reason)
                continue

            candidates += 1
            logger.info("Candidate %s %s [%s]: %s", symbol, timeframe, mode, result.reason)
            try:
                created = await self._decide_and_store(state, result.reason, mode, utc_now)
            except MarketScanError as exc:
                logger.error("Decision failed for %s %s [%s]: %s", symbol, timeframe, mode, exc)
                continue
            if created:
                signals += 1
        return candidates, signals

    async def _decide_and_store(
        self,
        state: MarketState,
        candidate_reason: str,
        mode: str,
        utc_now: datetime,
    ) -> bool:
        if self._decision is None:
            return False

        proposal = await self._decision.decide(state, candidate_reason, mode)
        if proposal is None:
            return False

        if proposal.confidence < self._config.confidence_threshold:
            logger.info(
                "Proposal for %s %s [%s] below confidence threshold (%.2f < %.2f)",
                state.symbol, state.timeframe, mode,
                proposal.confidence, self._config.confidence_threshold,
            )
            return False

        try:
            validate_proposal(
                proposal,
                atr=state.atr,
                min_atr_multiple=self._config.min_atr_multiple,
                max_atr_multiple=self._config.max_atr_multiple,
            )
        except ProposalValidationError as exc:
            for violation in exc.violations:
                logger.warning(
                    "Discarded proposal for %s %s [%s]: %s",
                    state.symbol, state.timeframe, mode, violation,
                )
            return False

        signal = self._to_signal(proposal, state, candidate_reason, mode, utc_now)
        signal_id = self._repo.insert_signal(signal)
        if signal_id is None:
            return False

        signal = replace(signal, id=signal_id)
        logger.info(
            "Signal %d created: %s %s %s %s @ %s",
            signal_id, signal.symbol, signal.timeframe, signal.mode,
            signal.direction, signal.entry,
        )
        try:
            await self._notifier.notify_created(signal)
        except Exception as exc:
            logger.error("Notification failed for signal %d: %s", signal_id, exc)
        return True

    @staticmethod
    def _to_signal(
        proposal: TradeProposal,
        state: MarketState,
        candidate_reason: str,
        mode: str,
        utc_now: datetime,
    ) -> Signal:
        return Signal(
            symbol=state.symbol,
            timeframe=state.timeframe,
            mode=mode,
            direction=proposal.direction,
            entry=proposal.entry,
            stop_loss=proposal.stop_loss,
            take_profits=tuple(proposal.take_profits),
            confidence=proposal.confidence,
            reason=proposal.reason,
            candidate_reason=candidate_reason,
            management_hint=proposal.management_hint,
            status=PENDING,
            created_at=utc_now.replace(microsecond=0),
        )
