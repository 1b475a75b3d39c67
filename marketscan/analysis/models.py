"""Analysis data models: the market snapshot and candidate verdict."""

from dataclasses import asdict, dataclass, field
from typing import Optional

from marketscan.indicators.models import PatternSet, SRLevel, SwingPoint
from marketscan.indicators.momentum import is_overbought, is_oversold


@dataclass(frozen=True)
class TrendState:
    """Trend classification plus the flags it was derived from."""

    direction: str  # uptrend, downtrend, choppy, transition, unclear
    strength: str  # strong, moderate, weak
    description: str
    price_above_fast: bool = False
    fast_above_slow: bool = False
    price_below_fast: bool = False
    fast_below_slow: bool = False
    has_higher_highs: bool = False
    has_higher_lows: bool = False
    has_lower_highs: bool = False
    has_lower_lows: bool = False


@dataclass(frozen=True)
class MarketState:
    """Immutable snapshot of one symbol/timeframe at its latest bar."""

    current_price: float
    bar_count: int
    fast_ma: Optional[float]
    slow_ma: Optional[float]
    atr: Optional[float]
    rsi: Optional[float]
    swing_highs: tuple[SwingPoint, ...]
    swing_lows: tuple[SwingPoint, ...]
    sr_levels: tuple[SRLevel, ...]
    nearest_level: Optional[SRLevel]
    patterns: PatternSet
    trend: TrendState
    symbol: Optional[str] = None
    timeframe: Optional[str] = None

    @property
    def rsi_oversold(self) -> bool:
        return self.rsi is not None and is_oversold(self.rsi)

    @property
    def rsi_overbought(self) -> bool:
        return self.rsi is not None and is_overbought(self.rsi)

    def to_dict(self) -> dict:
        """JSON-ready representation (timestamps as ISO strings)."""
        data = asdict(self)
        for key in ("swing_highs", "swing_lows"):
            data[key] = [
                {**point, "timestamp": point["timestamp"].isoformat()}
                for point in data[key]
            ]
        data["rsi_oversold"] = self.rsi_oversold
        data["rsi_overbought"] = self.rsi_overbought
        return data


@dataclass(frozen=True)
class HeuristicHit:
    """One candidate heuristic that fired, with its rendered reason."""

    heuristic_id: str
    text: str


@dataclass(frozen=True)
class CandidateResult:
    """Verdict of the candidate filter.

    ``reason`` is the `` + ``-joined text of every hit for a candidate, the
    rejection message when a precondition failed, or empty when nothing
    fired.
    """

    is_candidate: bool
    reason: str = ""
    hits: tuple[HeuristicHit, ...] = field(default_factory=tuple)

    @classmethod
    def from_hits(cls, hits: list[HeuristicHit]) -> "CandidateResult":
        if not hits:
            return cls(is_candidate=False)
        return cls(
            is_candidate=True,
            reason=" + ".join(hit.text for hit in hits),
            hits=tuple(hits),
        )
