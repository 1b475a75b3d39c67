"""Decision provider protocol and the trade proposal it returns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from marketscan.analysis.models import MarketState


@dataclass(frozen=True)
class TradeProposal:
    """Concrete trade parameters returned for a candidate market state."""

    direction: str  # "long" or "short"
    entry: float
    stop_loss: float
    take_profits: tuple[float, ...]
    confidence: float
    reason: str
    management_hint: str = ""


@runtime_checkable
class DecisionProvider(Protocol):
    """Interface for whatever turns a candidate into trade parameters."""

    async def decide(
        self, state: MarketState, candidate_reason: str, mode: str
    ) -> Optional[TradeProposal]:
        """Return a proposal, or ``None`` for "no trade"."""
        ...
