"""Trade lifecycle state machine.

    pending ──▶ triggered ──▶ win | loss | timeout | breakeven
       │
       └──────▶ expired

Terminal statuses never change again.  Bars are scanned strictly in
timestamp order; within one bar the stop-loss is checked before any
take-profit, and take-profits are checked in stored (nearest-first) order.
"""

import logging
from dataclasses import replace
from typing import Optional

from marketscan.errors import InvalidBarError, LifecycleInvariantViolation
from marketscan.lifecycle.models import (
    EXPIRED,
    HIT_SL,
    HIT_TIMEOUT,
    LONG,
    OUTCOME_STATUSES,
    PENDING,
    TRIGGERED,
    Signal,
    Transition,
    tp_hit,
)
from marketscan.lifecycle.outcome import (
    build_outcome_detail,
    calculate_risk_multiple,
    determine_outcome,
)
from marketscan.market.models import Bar

logger = logging.getLogger("marketscan.tracker")

_ALLOWED: dict[str, frozenset[str]] = {
    PENDING: frozenset({TRIGGERED, EXPIRED}),
    TRIGGERED: frozenset(OUTCOME_STATUSES),
}


def _ensure_chronological(bars: list[Bar]) -> None:
    for i in range(1, len(bars)):
        if bars[i].timestamp <= bars[i - 1].timestamp:
            raise InvalidBarError(
                f"Bars out of order at index {i} "
                f"({bars[i].timestamp.isoformat()} <= "
                f"{bars[i - 1].timestamp.isoformat()})",
                index=i,
            )


class TradeLifecycleTracker:
    """Advances signals through their lifecycle against fetched bars.

    Stateless apart from its two thresholds, so one instance can serve every
    signal in a cycle.
    """

    def __init__(self, expiration_candles: int = 20, timeout_candles: int = 100) -> None:
        if expiration_candles < 1 or timeout_candles < 1:
            raise ValueError(
                f"Candle thresholds must be at least 1 "
                f"(expiration={expiration_candles}, timeout={timeout_candles})"
            )
        self._expiration_candles = expiration_candles
        self._timeout_candles = timeout_candles

    # ── Public API ───────────────────────────────────────────────────────

    def check_pending(self, signal: Signal, bars: list[Bar]) -> Optional[Transition]:
        """Trigger or expire a pending *signal*; ``None`` when nothing changes."""
        self._require_status(signal, PENDING)
        _ensure_chronological(bars)

        for bar in bars:
            if bar.timestamp < signal.created_at:
                continue
            if bar.low <= signal.entry <= bar.high:
                updated = self._transition(signal, TRIGGERED, triggered_at=bar.timestamp)
                logger.info(
                    "Signal %s triggered at %s (%s)",
                    signal.id, signal.entry, bar.timestamp.isoformat(),
                )
                return Transition(updated, PENDING, "triggered")

        since_creation = sum(1 for b in bars if b.timestamp > signal.created_at)
        if since_creation >= self._expiration_candles:
            updated = self._transition(signal, EXPIRED, closed_at=bars[-1].timestamp)
            logger.info(
                "Signal %s expired (%d candles without entry hit)",
                signal.id, since_creation,
            )
            return Transition(updated, PENDING, "expired")
        return None

    def check_triggered(self, signal: Signal, bars: list[Bar]) -> Optional[Transition]:
        """Close a triggered *signal* on SL, TP or timeout; ``None`` otherwise."""
        self._require_status(signal, TRIGGERED)
        _ensure_chronological(bars)

        after = [b for b in bars if b.timestamp > signal.triggered_at]
        if not after:
            return None

        for bar in after:
            hit = self._check_exit(signal, bar)
            if hit is not None:
                kind, price = hit
                return self._close(signal, kind, price, bar)

        if len(after) >= self._timeout_candles:
            last = after[-1]
            return self._close(signal, HIT_TIMEOUT, last.close, last)
        return None

    def advance(self, signal: Signal, bars: list[Bar]) -> list[Transition]:
        """Apply every transition *bars* justify, in order.

        A pending signal that triggers is immediately checked for closure
        against the bars after its trigger bar.
        """
        transitions: list[Transition] = []
        if signal.status == PENDING:
            step = self.check_pending(signal, bars)
            if step is None:
                return transitions
            transitions.append(step)
            signal = step.signal

        if signal.status == TRIGGERED:
            step = self.check_triggered(signal, bars)
            if step is not None:
                transitions.append(step)
        elif not transitions:
            raise LifecycleInvariantViolation(
                f"Signal {signal.id} is already {signal.status}"
            )
        return transitions

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _check_exit(signal: Signal, bar: Bar) -> Optional[tuple[str, float]]:
        """Return ``(hit_kind, hit_price)`` if *bar* closes the trade.

        Stop-loss wins when both are touched in the same bar.
        """
        if signal.direction == LONG:
            if bar.low <= signal.stop_loss:
                return HIT_SL, signal.stop_loss
            for i, tp in enumerate(signal.take_profits):
                if bar.high >= tp:
                    return tp_hit(i), tp
        else:
            if bar.high >= signal.stop_loss:
                return HIT_SL, signal.stop_loss
            for i, tp in enumerate(signal.take_profits):
                if bar.low <= tp:
                    return tp_hit(i), tp
        return None

    def _close(self, signal: Signal, hit: str, hit_price: float, bar: Bar) -> Transition:
        r_multiple = calculate_risk_multiple(
            signal.direction, signal.entry, signal.stop_loss, hit, hit_price
        )
        outcome = determine_outcome(hit, r_multiple)
        detail = build_outcome_detail(hit, r_multiple, hit_price, bar.timestamp)
        updated = self._transition(
            signal,
            outcome,
            closed_at=bar.timestamp,
            outcome=outcome,
            outcome_detail=detail,
        )
        logger.info(
            "Signal %s closed: %s at %s (R: %.2f)",
            signal.id, hit.upper(), hit_price, detail.risk_multiple,
        )
        return Transition(updated, TRIGGERED, "closed")

    @staticmethod
    def _require_status(signal: Signal, expected: str) -> None:
        if signal.status != expected:
            raise LifecycleInvariantViolation(
                f"Signal {signal.id} is {signal.status}, expected {expected}"
            )

    @staticmethod
    def _transition(signal: Signal, status: str, **changes) -> Signal:
        allowed = _ALLOWED.get(signal.status, frozenset())
        if status not in allowed:
            raise LifecycleInvariantViolation(
                f"Illegal transition for signal {signal.id}: "
                f"{signal.status} -> {status}"
            )
        return replace(signal, status=status, **changes)
