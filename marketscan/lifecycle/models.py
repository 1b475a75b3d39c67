"""Signal lifecycle data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# ── Directions ───────────────────────────────────────────────────────────

LONG = "long"
SHORT = "short"
DIRECTIONS = (LONG, SHORT)

# ── Statuses ─────────────────────────────────────────────────────────────

PENDING = "pending"
TRIGGERED = "triggered"
WIN = "win"
LOSS = "loss"
TIMEOUT = "timeout"
BREAKEVEN = "breakeven"
EXPIRED = "expired"

OUTCOME_STATUSES = (WIN, LOSS, TIMEOUT, BREAKEVEN)
TERMINAL_STATUSES = OUTCOME_STATUSES + (EXPIRED,)
ALL_STATUSES = (PENDING, TRIGGERED) + TERMINAL_STATUSES

# ── Hit kinds ────────────────────────────────────────────────────────────

HIT_SL = "sl"
HIT_TIMEOUT = "timeout"


def tp_hit(index: int) -> str:
    """Hit label for the take-profit at zero-based *index* (``tp1``...)."""
    return f"tp{index + 1}"


@dataclass(frozen=True)
class OutcomeDetail:
    """How a triggered signal closed."""

    hit: str  # "sl", "timeout", "tp1", "tp2", ...
    risk_multiple: float
    hit_price: float
    hit_time: datetime

    def to_dict(self) -> dict:
        return {
            "hit": self.hit,
            "risk_multiple": self.risk_multiple,
            "hit_price": self.hit_price,
            "hit_time": self.hit_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OutcomeDetail":
        return cls(
            hit=data["hit"],
            risk_multiple=float(data["risk_multiple"]),
            hit_price=float(data["hit_price"]),
            hit_time=datetime.fromisoformat(data["hit_time"]),
        )


@dataclass(frozen=True)
class Signal:
    """A proposed trade and its lifecycle state.

    Instances are immutable; the tracker produces updated copies with
    ``dataclasses.replace``.
    """

    symbol: str
    timeframe: str
    mode: str
    direction: str  # "long" or "short"
    entry: float
    stop_loss: float
    take_profits: tuple[float, ...]
    created_at: datetime
    confidence: float = 0.0
    reason: str = ""
    candidate_reason: str = ""
    management_hint: str = ""
    status: str = PENDING
    triggered_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    outcome: Optional[str] = None
    outcome_detail: Optional[OutcomeDetail] = None
    id: Optional[int] = field(default=None, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        """JSON-ready representation for the API."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "mode": self.mode,
            "direction": self.direction,
            "entry": self.entry,
            "stop_loss": self.stop_loss,
            "take_profits": list(self.take_profits),
            "confidence": self.confidence,
            "reason": self.reason,
            "candidate_reason": self.candidate_reason,
            "management_hint": self.management_hint,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "triggered_at": self.triggered_at.isoformat() if self.triggered_at else None,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "outcome": self.outcome,
            "outcome_detail": (
                self.outcome_detail.to_dict() if self.outcome_detail else None
            ),
        }


@dataclass(frozen=True)
class Transition:
    """One status change produced by the tracker."""

    signal: Signal
    previous_status: str
    event: str  # "triggered", "expired", "closed"
