"""Swing points and support/resistance levels, pure functions."""

from typing import Optional

from marketscan.indicators.models import SRLevel, SwingPoint
from marketscan.market.models import Bar

STRUCTURE_WINDOW = 3
TREND_WINDOW = 2
DEFAULT_CLUSTER_FACTOR = 0.5
DEFAULT_PROXIMITY_FACTOR = 0.3


def find_swing_highs(
    bars: list[Bar],
    left_bars: int = STRUCTURE_WINDOW,
    right_bars: int = STRUCTURE_WINDOW,
) -> list[SwingPoint]:
    """Identify swing highs.

    A swing high is a bar whose high is strictly higher than the highs of
    the *left_bars* bars before it and the *right_bars* bars after it.  An
    equal neighbour disqualifies it, so a flat double top yields nothing.
    The last *right_bars* bars can never qualify.
    """
    if len(bars) < left_bars + right_bars + 1:
        return []

    highs: list[SwingPoint] = []
    for i in range(left_bars, len(bars) - right_bars):
        high = bars[i].high
        window = bars[i - left_bars : i] + bars[i + 1 : i + right_bars + 1]
        if all(b.high < high for b in window):
            highs.append(SwingPoint(price=high, timestamp=bars[i].timestamp, index=i))
    return highs


def find_swing_lows(
    bars: list[Bar],
    left_bars: int = STRUCTURE_WINDOW,
    right_bars: int = STRUCTURE_WINDOW,
) -> list[SwingPoint]:
    """Identify swing lows (mirror of ``find_swing_highs``)."""
    if len(bars) < left_bars + right_bars + 1:
        return []

    lows: list[SwingPoint] = []
    for i in range(left_bars, len(bars) - right_bars):
        low = bars[i].low
        window = bars[i - left_bars : i] + bars[i + 1 : i + right_bars + 1]
        if all(b.low > low for b in window):
            lows.append(SwingPoint(price=low, timestamp=bars[i].timestamp, index=i))
    return lows


def _cluster_swings(
    swings: list[SwingPoint], threshold: float
) -> list[tuple[float, int]]:
    """Greedily cluster swing prices.

    Swings are sorted by price; each one joins the current cluster when it
    lies within *threshold* of the cluster's first (anchor) member, otherwise
    it starts a new cluster.  A cluster can therefore span up to
    ``2 × threshold`` end to end.

    Returns ``(average_price, touch_count)`` tuples in ascending price order.
    """
    if not swings:
        return []

    ordered = sorted(s.price for s in swings)
    clusters: list[list[float]] = []
    current: list[float] = [ordered[0]]

    for price in ordered[1:]:
        if abs(price - current[0]) <= threshold:
            current.append(price)
        else:
            clusters.append(current)
            current = [price]
    clusters.append(current)

    return [(sum(c) / len(c), len(c)) for c in clusters]


def identify_sr_levels(
    swing_highs: list[SwingPoint],
    swing_lows: list[SwingPoint],
    atr: Optional[float],
    factor: float = DEFAULT_CLUSTER_FACTOR,
) -> list[SRLevel]:
    """Cluster swings into support/resistance levels.

    Swing highs become resistance, swing lows support.  The clustering
    distance is ``atr × factor``.  Returns an empty list without a positive
    ATR.  Levels are sorted by price, highest first.
    """
    if not atr or atr <= 0:
        return []

    threshold = atr * factor
    levels: list[SRLevel] = []
    for price, touches in _cluster_swings(swing_highs, threshold):
        levels.append(SRLevel(price=price, kind="resistance", touches=touches))
    for price, touches in _cluster_swings(swing_lows, threshold):
        levels.append(SRLevel(price=price, kind="support", touches=touches))

    levels.sort(key=lambda lvl: lvl.price, reverse=True)
    return levels


def find_nearest_level(
    price: float,
    levels: list[SRLevel],
    atr: Optional[float],
    factor: float = DEFAULT_PROXIMITY_FACTOR,
) -> Optional[SRLevel]:
    """Return the level closest to *price* if it is within ``atr × factor``.

    On equal distances the first level in *levels* wins.
    """
    if not levels or not atr:
        return None

    closest: Optional[SRLevel] = None
    min_distance = float("inf")
    for level in levels:
        distance = abs(price - level.price)
        if distance < min_distance:
            min_distance = distance
            closest = level

    return closest if min_distance <= atr * factor else None
