"""Average True Range. Pure functions, no I/O."""

from typing import Optional

from marketscan.indicators.moving_average import calculate_ema, latest_value
from marketscan.market.models import Bar


def calculate_true_range(bars: list[Bar]) -> list[float]:
    """Per-bar True Range.

        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Bar 0 has no previous close, so its entry is ``float('nan')``.
    """
    if not bars:
        return []

    true_ranges: list[float] = [float("nan")]
    for i in range(1, len(bars)):
        high = bars[i].high
        low = bars[i].low
        prev_close = bars[i - 1].close
        true_ranges.append(
            max(
                high - low,
                abs(high - prev_close),
                abs(low - prev_close),
            )
        )
    return true_ranges


def calculate_atr(bars: list[Bar], period: int = 14) -> list[float]:
    """Calculate the Average True Range series.

    ATR is the EMA (see ``calculate_ema``) of the True Range series starting
    at bar 1.  The undefined TR of bar 0 is put back in front so the result
    is index-aligned with *bars*: the first defined ATR sits at index
    *period*.
    """
    if not bars:
        return []
    true_ranges = calculate_true_range(bars)
    return [float("nan")] + calculate_ema(true_ranges[1:], period)


def latest_atr(bars: list[Bar], period: int = 14) -> Optional[float]:
    """Most recent ATR value, or ``None`` with insufficient data."""
    return latest_value(calculate_atr(bars, period))
