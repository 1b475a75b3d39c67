"""Candle pattern detection on the latest one or two bars, pure functions."""

from marketscan.indicators.models import PatternResult, PatternSet
from marketscan.market.models import Bar

# Pin bar geometry, as fractions of body or total range
PIN_LONG_WICK_TO_BODY = 2.0
PIN_SHORT_WICK_TO_BODY = 0.5
PIN_MAX_BODY_TO_RANGE = 0.3
PIN_MIN_WICK_TO_RANGE = 0.5

_NONE = PatternResult(detected=False)


def _body(bar: Bar) -> float:
    return abs(bar.close - bar.open)


def _upper_wick(bar: Bar) -> float:
    return bar.high - max(bar.open, bar.close)


def _lower_wick(bar: Bar) -> float:
    return min(bar.open, bar.close) - bar.low


def detect_bullish_engulfing(bars: list[Bar]) -> PatternResult:
    """Bearish bar followed by a larger bullish bar whose body covers it."""
    if len(bars) < 2:
        return _NONE

    prev, current = bars[-2], bars[-1]
    detected = (
        prev.close < prev.open
        and current.close > current.open
        and current.open <= prev.close
        and current.close >= prev.open
        and _body(current) > _body(prev)
    )
    if not detected:
        return _NONE
    return PatternResult(
        detected=True,
        description=(
            "Bullish engulfing: Current green candle fully engulfs "
            "previous red candle body"
        ),
    )


def detect_bearish_engulfing(bars: list[Bar]) -> PatternResult:
    """Bullish bar followed by a larger bearish bar whose body covers it."""
    if len(bars) < 2:
        return _NONE

    prev, current = bars[-2], bars[-1]
    detected = (
        prev.close > prev.open
        and current.close < current.open
        and current.open >= prev.close
        and current.close <= prev.open
        and _body(current) > _body(prev)
    )
    if not detected:
        return _NONE
    return PatternResult(
        detected=True,
        description=(
            "Bearish engulfing: Current red candle fully engulfs "
            "previous green candle body"
        ),
    )


def detect_bullish_pin_bar(bar: Bar) -> PatternResult:
    """Hammer: long lower wick, small body near the top of the range.

    Criteria:
        lower wick ≥ 2 × body, upper wick ≤ 0.5 × body,
        body < 30% of range, lower wick > 50% of range.
    A zero-range bar never qualifies.
    """
    total_range = bar.high - bar.low
    if total_range <= 0:
        return _NONE

    body = _body(bar)
    lower = _lower_wick(bar)
    detected = (
        lower >= body * PIN_LONG_WICK_TO_BODY
        and _upper_wick(bar) <= body * PIN_SHORT_WICK_TO_BODY
        and body < total_range * PIN_MAX_BODY_TO_RANGE
        and lower > total_range * PIN_MIN_WICK_TO_RANGE
    )
    if not detected:
        return _NONE
    return PatternResult(
        detected=True,
        description=(
            "Bullish pin bar: Long lower wick with small body at top, "
            "signals rejection of lower prices"
        ),
    )


def detect_bearish_pin_bar(bar: Bar) -> PatternResult:
    """Shooting star: mirror of ``detect_bullish_pin_bar``."""
    total_range = bar.high - bar.low
    if total_range <= 0:
        return _NONE

    body = _body(bar)
    upper = _upper_wick(bar)
    detected = (
        upper >= body * PIN_LONG_WICK_TO_BODY
        and _lower_wick(bar) <= body * PIN_SHORT_WICK_TO_BODY
        and body < total_range * PIN_MAX_BODY_TO_RANGE
        and upper > total_range * PIN_MIN_WICK_TO_RANGE
    )
    if not detected:
        return _NONE
    return PatternResult(
        detected=True,
        description=(
            "Bearish pin bar: Long upper wick with small body at bottom, "
            "signals rejection of higher prices"
        ),
    )


def detect_inside_bar(bars: list[Bar]) -> PatternResult:
    """Current range inside (or equal to) the previous bar's range."""
    if len(bars) < 2:
        return _NONE

    prev, current = bars[-2], bars[-1]
    if current.high <= prev.high and current.low >= prev.low:
        return PatternResult(
            detected=True,
            description=(
                "Inside bar: Current candle range is completely inside "
                "previous candle range, signals consolidation"
            ),
        )
    return _NONE


def analyze_patterns(bars: list[Bar]) -> PatternSet:
    """Run every pattern check against the tail of *bars*."""
    if len(bars) < 2:
        return PatternSet()

    last = bars[-1]
    return PatternSet(
        bullish_engulfing=detect_bullish_engulfing(bars),
        bearish_engulfing=detect_bearish_engulfing(bars),
        bullish_pin=detect_bullish_pin_bar(last),
        bearish_pin=detect_bearish_pin_bar(last),
        inside_bar=detect_inside_bar(bars),
    )
