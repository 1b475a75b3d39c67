"""Exponential moving average. Pure functions, no I/O."""

import math
from typing import Optional


def calculate_ema(prices: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the recurrence:
        ``EMA[i] = (price[i] - EMA[i-1]) × k + EMA[i-1]``
    where ``k = 2 / (period + 1)``.

    The value at index ``period - 1`` is seeded with the SMA of the first
    *period* prices; every entry before it is ``float('nan')``.

    Returns a list the same length as *prices*.  When fewer than *period*
    prices are supplied (or *period* is not positive) every entry is NaN.
    """
    n = len(prices)
    ema: list[float] = [float("nan")] * n
    if period <= 0 or n < period:
        return ema

    k = 2.0 / (period + 1)

    # Seed: SMA of first *period* prices
    ema[period - 1] = sum(prices[:period]) / period

    for i in range(period, n):
        ema[i] = (prices[i] - ema[i - 1]) * k + ema[i - 1]

    return ema


def latest_value(series: list[float]) -> Optional[float]:
    """Return the last entry of an indicator series, or ``None`` if undefined."""
    if not series:
        return None
    last = series[-1]
    return None if math.isnan(last) else last


def latest_ema(prices: list[float], period: int) -> Optional[float]:
    """Most recent EMA value, or ``None`` with insufficient data."""
    return latest_value(calculate_ema(prices, period))
