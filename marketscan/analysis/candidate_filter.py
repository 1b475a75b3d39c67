"""Candidate filter — decides whether a market state is worth a decision.

Pure functions, no I/O.  Preconditions reject early with a reason; after
that each heuristic is checked independently and every one that fires
contributes a ``HeuristicHit``.  The hits are joined into the textual
reason only when the ``CandidateResult`` is built.
"""

import logging
from typing import Optional

from marketscan.analysis.market_state import MIN_BARS
from marketscan.analysis.models import CandidateResult, HeuristicHit, MarketState
from marketscan.market.models import Bar

logger = logging.getLogger("marketscan.candidate_filter")

MODE_CONSERVATIVE = "conservative"
MODE_AGGRESSIVE = "aggressive"
MODES = (MODE_CONSERVATIVE, MODE_AGGRESSIVE)

PULLBACK_LOOKBACK = 10
PULLBACK_EMA_TOLERANCE = 0.005  # 0.5% of the fast EMA
PULLBACK_SWING_TOLERANCE = 0.01  # 1% of the pullback extreme
STRONG_LEVEL_TOUCHES = 2
MIN_DIVERGENCE_SWINGS = 2


def get_minimum_atr(price: float) -> float:
    """Volatility floor: 0.0001 absolute below a price of 10, else 0.01%."""
    if price < 10:
        return 0.0001
    return price * 0.0001


# ── Heuristics ──────────────────────────────────────────────────────────


def _check_trend_engulfing(state: MarketState) -> Optional[HeuristicHit]:
    patterns, trend = state.patterns, state.trend
    if (
        patterns.bullish_engulfing.detected
        and trend.direction == "uptrend"
        and state.current_price > state.fast_ma
    ):
        return HeuristicHit("trend_engulfing", "Bullish engulfing in uptrend")
    if (
        patterns.bearish_engulfing.detected
        and trend.direction == "downtrend"
        and state.current_price < state.fast_ma
    ):
        return HeuristicHit("trend_engulfing", "Bearish engulfing in downtrend")
    return None


def _check_pin_at_structure(state: MarketState) -> Optional[HeuristicHit]:
    level = state.nearest_level
    if level is None:
        return None
    if state.patterns.bullish_pin.detected and level.kind == "support":
        return HeuristicHit(
            "pin_at_structure",
            f"Bullish pin bar at support level ({level.price:.5f})",
        )
    if state.patterns.bearish_pin.detected and level.kind == "resistance":
        return HeuristicHit(
            "pin_at_structure",
            f"Bearish pin bar at resistance level ({level.price:.5f})",
        )
    return None


def _check_pullback(bars: list[Bar], state: MarketState) -> Optional[HeuristicHit]:
    """Pullback to the fast EMA or last structure swing, then a bounce.

    Uptrend: the lowest of the last 10 closes sits below the current price,
    the previous close is below the current price, and that low is within
    0.5% of the fast EMA or within 1% of the most recent swing low.
    Downtrend is the mirror with highs.
    """
    direction = state.trend.direction
    if direction not in ("uptrend", "downtrend"):
        return None

    closes = [b.close for b in bars[-PULLBACK_LOOKBACK:]]
    price = state.current_price
    fast_ma = state.fast_ma

    if direction == "uptrend":
        extreme = min(closes)
        turned = price > extreme and closes[-2] < price
        swings = state.swing_lows
        hit = HeuristicHit("pullback", "Pullback to support in uptrend, bouncing")
    else:
        extreme = max(closes)
        turned = price < extreme and closes[-2] > price
        swings = state.swing_highs
        hit = HeuristicHit("pullback", "Pullback to resistance in downtrend, rejecting")

    touched_ema = abs(extreme - fast_ma) / fast_ma < PULLBACK_EMA_TOLERANCE
    near_swing = bool(swings) and (
        abs(extreme - swings[-1].price) / extreme < PULLBACK_SWING_TOLERANCE
    )
    if turned and (touched_ema or near_swing):
        return hit
    return None


def _check_momentum_extreme(state: MarketState) -> Optional[HeuristicHit]:
    # Extreme RSI with enough structure to hint at a divergence.
    if state.rsi is None:
        return None
    if state.rsi_oversold and len(state.swing_lows) >= MIN_DIVERGENCE_SWINGS:
        return HeuristicHit(
            "momentum_extreme", "RSI oversold with potential bullish divergence"
        )
    if state.rsi_overbought and len(state.swing_highs) >= MIN_DIVERGENCE_SWINGS:
        return HeuristicHit(
            "momentum_extreme", "RSI overbought with potential bearish divergence"
        )
    return None


def _check_reversal_at_sr(state: MarketState) -> Optional[HeuristicHit]:
    level = state.nearest_level
    if level is None or level.touches < STRONG_LEVEL_TOUCHES:
        return None

    patterns = state.patterns
    if level.kind == "support" and (
        patterns.bullish_engulfing.detected or patterns.bullish_pin.detected
    ):
        return HeuristicHit(
            "reversal_at_sr",
            f"Reversal setup at strong support ({level.touches} touches)",
        )
    if level.kind == "resistance" and (
        patterns.bearish_engulfing.detected or patterns.bearish_pin.detected
    ):
        return HeuristicHit(
            "reversal_at_sr",
            f"Reversal setup at strong resistance ({level.touches} touches)",
        )
    return None


# ── Public API ──────────────────────────────────────────────────────────


def check_preconditions(bars: list[Bar], state: MarketState) -> Optional[str]:
    """Return the rejection reason, or ``None`` when heuristics may run."""
    if len(bars) < MIN_BARS:
        return "Insufficient candle data"
    if not state.atr or not state.fast_ma or not state.slow_ma:
        return "Missing required indicators"

    floor = get_minimum_atr(state.current_price)
    if state.atr < floor:
        return (
            f"ATR too small ({state.atr:.5f} < {floor:.5f}), "
            "insufficient volatility"
        )
    if state.trend.direction == "choppy":
        return "Choppy market with flat EMAs, no clear trend"
    return None


def apply_candidate_filter(
    bars: list[Bar], state: MarketState, mode: str = MODE_CONSERVATIVE
) -> CandidateResult:
    """Score *state* against every heuristic allowed in *mode*.

    Args:
        bars: The bars *state* was composed from, oldest first.
        state: Snapshot from ``compose_market_state``.
        mode: ``"conservative"`` or ``"aggressive"``; only aggressive mode
            looks at momentum extremes.

    Returns:
        A ``CandidateResult``.  A failed precondition yields
        ``is_candidate=False`` with its reason and no hits.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r}")

    rejection = check_preconditions(bars, state)
    if rejection is not None:
        return CandidateResult(is_candidate=False, reason=rejection)

    checks = [
        _check_trend_engulfing(state),
        _check_pin_at_structure(state),
        _check_pullback(bars, state),
    ]
    if mode == MODE_AGGRESSIVE:
        checks.append(_check_momentum_extreme(state))
    checks.append(_check_reversal_at_sr(state))

    result = CandidateResult.from_hits([hit for hit in checks if hit is not None])
    if result.is_candidate:
        logger.debug(
            "Candidate %s %s [%s]: %s",
            state.symbol or "unknown",
            state.timeframe or "-",
            mode,
            result.reason,
        )
    return result
