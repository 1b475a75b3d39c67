"""Typed outputs of the structure and pattern detectors."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class SwingPoint:
    """A local extremum confirmed by the bars on either side."""

    price: float
    timestamp: datetime
    index: int


@dataclass(frozen=True)
class SRLevel:
    """A clustered support or resistance price."""

    price: float  # centroid of the clustered swings
    kind: str  # "support" or "resistance"
    touches: int


@dataclass(frozen=True)
class PatternResult:
    """Outcome of one candle-pattern check."""

    detected: bool
    description: str = ""


_NOT_DETECTED = PatternResult(detected=False)


@dataclass(frozen=True)
class PatternSet:
    """Every pattern check run against the latest bars."""

    bullish_engulfing: PatternResult = field(default=_NOT_DETECTED)
    bearish_engulfing: PatternResult = field(default=_NOT_DETECTED)
    bullish_pin: PatternResult = field(default=_NOT_DETECTED)
    bearish_pin: PatternResult = field(default=_NOT_DETECTED)
    inside_bar: PatternResult = field(default=_NOT_DETECTED)
