"""Relative Strength Index. Pure functions, no I/O."""

from typing import Optional

from marketscan.indicators.moving_average import latest_value

OVERSOLD_THRESHOLD = 30.0
OVERBOUGHT_THRESHOLD = 70.0


def _rsi_from_avgs(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_rsi(closes: list[float], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RSI = 100 - 100 / (1 + avg_gain / avg_loss), or exactly 100
           when avg_loss is 0.

    Requires at least ``period + 1`` closes; otherwise every entry is NaN.
    Returns a list the same length as *closes*.
    """
    n = len(closes)
    rsi: list[float] = [float("nan")] * n
    if period <= 0 or n < period + 1:
        return rsi

    deltas = [closes[i] - closes[i - 1] for i in range(1, n)]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # deltas are offset by one from closes
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


def latest_rsi(closes: list[float], period: int = 14) -> Optional[float]:
    """Most recent RSI value, or ``None`` with insufficient data."""
    return latest_value(calculate_rsi(closes, period))


def is_oversold(rsi: float, threshold: float = OVERSOLD_THRESHOLD) -> bool:
    return rsi < threshold


def is_overbought(rsi: float, threshold: float = OVERBOUGHT_THRESHOLD) -> bool:
    return rsi > threshold
