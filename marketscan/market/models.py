"""Market data models: the bar type every downstream component consumes."""

import math
from dataclasses import dataclass
from datetime import datetime

from marketscan.errors import InvalidBarError


@dataclass(frozen=True)
class Bar:
    """A single OHLCV bar, timestamped at its open (UTC)."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


def validate_bars(bars: list[Bar]) -> None:
    """Check a fetched batch before it is used.

    Raises ``InvalidBarError`` naming the first offending bar when a price is
    non-finite or non-positive, when ``high``/``low`` are not the extremes of
    the bar, or when timestamps are not strictly increasing.
    """
    prev: Bar | None = None
    for i, bar in enumerate(bars):
        prices = (bar.open, bar.high, bar.low, bar.close)
        if not all(math.isfinite(p) for p in prices):
            raise InvalidBarError(f"Bar {i} has a non-finite price", index=i)
        if any(p <= 0 for p in prices):
            raise InvalidBarError(f"Bar {i} has a non-positive price", index=i)
        if bar.high != max(prices):
            raise InvalidBarError(f"Bar {i}: high is not the highest price", index=i)
        if bar.low != min(prices):
            raise InvalidBarError(f"Bar {i}: low is not the lowest price", index=i)
        if prev is not None and bar.timestamp <= prev.timestamp:
            raise InvalidBarError(
                f"Bar {i} is not after bar {i - 1} "
                f"({bar.timestamp.isoformat()} <= {prev.timestamp.isoformat()})",
                index=i,
            )
        prev = bar
