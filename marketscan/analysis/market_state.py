"""Market state composition — trend classification and indicator snapshot.

Combines the pure indicator functions into one ``MarketState``.  Trend is a
decision table over price / fast EMA / slow EMA ordering, the swing
structure of the most recent bars, and the spread between the two EMAs.
"""

from typing import Optional

from marketscan.analysis.models import MarketState, TrendState
from marketscan.errors import InsufficientDataError
from marketscan.indicators.models import SwingPoint
from marketscan.indicators.momentum import latest_rsi
from marketscan.indicators.moving_average import latest_ema
from marketscan.indicators.patterns import analyze_patterns
from marketscan.indicators.swings import (
    TREND_WINDOW,
    find_nearest_level,
    find_swing_highs,
    find_swing_lows,
    identify_sr_levels,
)
from marketscan.indicators.volatility import latest_atr
from marketscan.market.models import Bar

MIN_BARS = 50
STRUCTURE_LOOKBACK = 20
CHOPPY_SPREAD_PCT = 0.5


def _rising(points: list[SwingPoint]) -> bool:
    return len(points) >= 2 and points[-1].price > points[0].price


def _falling(points: list[SwingPoint]) -> bool:
    return len(points) >= 2 and points[-1].price < points[0].price


def determine_trend(
    price: float,
    fast_ma: Optional[float],
    slow_ma: Optional[float],
    bars: list[Bar],
) -> TrendState:
    """Classify the trend of *bars* at *price*.

    Rules, first match wins:
        - Either EMA missing → unclear.
        - price > fast > slow → uptrend; strong with higher highs AND higher
          lows, moderate with one of them, weak with neither.
        - price < fast < slow → downtrend (mirror, lower highs/lows).
        - Otherwise choppy when the EMA spread is under 0.5% of their
          mean, else transition.

    Swing structure comes from the last 20 bars with a 2/2 window.
    """
    if fast_ma is None or slow_ma is None:
        return TrendState(
            direction="unclear",
            strength="weak",
            description="Insufficient data for trend determination",
        )

    recent = bars[-STRUCTURE_LOOKBACK:]
    recent_highs = find_swing_highs(recent, TREND_WINDOW, TREND_WINDOW)
    recent_lows = find_swing_lows(recent, TREND_WINDOW, TREND_WINDOW)

    flags = dict(
        price_above_fast=price > fast_ma,
        fast_above_slow=fast_ma > slow_ma,
        price_below_fast=price < fast_ma,
        fast_below_slow=fast_ma < slow_ma,
        has_higher_highs=_rising(recent_highs),
        has_higher_lows=_rising(recent_lows),
        has_lower_highs=_falling(recent_highs),
        has_lower_lows=_falling(recent_lows),
    )

    if flags["price_above_fast"] and flags["fast_above_slow"]:
        hh, hl = flags["has_higher_highs"], flags["has_higher_lows"]
        if hh and hl:
            strength = "strong"
            description = "Strong uptrend: Price > fast EMA > slow EMA with HH/HL structure"
        elif hh or hl:
            strength = "moderate"
            description = "Moderate uptrend: Price > fast EMA > slow EMA, partial HH/HL structure"
        else:
            strength = "weak"
            description = "Weak uptrend: Price > fast EMA > slow EMA but unclear swing structure"
        return TrendState("uptrend", strength, description, **flags)

    if flags["price_below_fast"] and flags["fast_below_slow"]:
        lh, ll = flags["has_lower_highs"], flags["has_lower_lows"]
        if lh and ll:
            strength = "strong"
            description = "Strong downtrend: Price < fast EMA < slow EMA with LH/LL structure"
        elif lh or ll:
            strength = "moderate"
            description = "Moderate downtrend: Price < fast EMA < slow EMA, partial LH/LL structure"
        else:
            strength = "weak"
            description = "Weak downtrend: Price < fast EMA < slow EMA but unclear swing structure"
        return TrendState("downtrend", strength, description, **flags)

    spread_pct = abs(fast_ma - slow_ma) / ((fast_ma + slow_ma) / 2) * 100
    if spread_pct < CHOPPY_SPREAD_PCT:
        return TrendState(
            "choppy",
            "weak",
            "Choppy: EMAs are flat and close together, no clear trend",
            **flags,
        )
    return TrendState(
        "transition",
        "weak",
        "Transitional: Mixed EMA signals, possible trend change",
        **flags,
    )


def compose_market_state(
    bars: list[Bar],
    fast_period: int = 50,
    slow_period: int = 200,
    atr_period: int = 14,
    rsi_period: int = 14,
    symbol: Optional[str] = None,
    timeframe: Optional[str] = None,
) -> MarketState:
    """Compute every indicator for *bars* and bundle them into a snapshot.

    Raises ``InsufficientDataError`` with fewer than 50 bars.  Individual
    indicators that still lack data (e.g. a slow EMA longer than the series)
    are ``None`` in the snapshot.
    """
    if len(bars) < MIN_BARS:
        raise InsufficientDataError(
            f"Need at least {MIN_BARS} bars to compose market state, got {len(bars)}"
        )

    closes = [b.close for b in bars]
    current_price = closes[-1]

    fast_ma = latest_ema(closes, fast_period)
    slow_ma = latest_ema(closes, slow_period)
    atr = latest_atr(bars, atr_period)
    rsi = latest_rsi(closes, rsi_period)

    swing_highs = find_swing_highs(bars)
    swing_lows = find_swing_lows(bars)
    sr_levels = identify_sr_levels(swing_highs, swing_lows, atr)
    nearest = find_nearest_level(current_price, sr_levels, atr)

    return MarketState(
        current_price=current_price,
        bar_count=len(bars),
        fast_ma=fast_ma,
        slow_ma=slow_ma,
        atr=atr,
        rsi=rsi,
        swing_highs=tuple(swing_highs),
        swing_lows=tuple(swing_lows),
        sr_levels=tuple(sr_levels),
        nearest_level=nearest,
        patterns=analyze_patterns(bars),
        trend=determine_trend(current_price, fast_ma, slow_ma, bars),
        symbol=symbol,
        timeframe=timeframe,
    )
