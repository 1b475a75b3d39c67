"""HTTP decision provider.

POSTs the market snapshot to an external decision service and parses its
answer into a ``TradeProposal``.  The service replies with::

    {"direction": "long" | "short" | "none", "entry": ..., "stop_loss": ...,
     "take_profits": [...], "confidence": 0.0-1.0, "reason": "...",
     "management_hint": "..."}
"""

import logging
from typing import Optional

import httpx

from marketscan.analysis.models import MarketState
from marketscan.decision.base import TradeProposal
from marketscan.errors import DecisionServiceError

logger = logging.getLogger("marketscan.decision")

_REQUIRED_FIELDS = ("direction", "entry", "stop_loss", "take_profits", "confidence", "reason")


class HttpDecisionProvider:
    """Async client for the decision service."""

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        self._url = url
        self._timeout = timeout

    async def decide(
        self, state: MarketState, candidate_reason: str, mode: str
    ) -> Optional[TradeProposal]:
        payload = {
            "state": state.to_dict(),
            "candidate_reason": candidate_reason,
            "mode": mode,
        }
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(self._url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise DecisionServiceError(f"Decision service request failed: {exc}") from exc
        except ValueError as exc:
            raise DecisionServiceError("Decision service returned invalid JSON") from exc

        return self._parse(data)

    @staticmethod
    def _parse(data) -> Optional[TradeProposal]:
        if not isinstance(data, dict):
            raise DecisionServiceError("Decision service response is not an object")

        if data.get("direction") == "none":
            logger.info("Decision service declined: %s", data.get("reason", ""))
            return None

        missing = [f for f in _REQUIRED_FIELDS if f not in data]
        if missing:
            raise DecisionServiceError(
                f"Decision service response missing fields: {', '.join(missing)}"
            )

        try:
            return TradeProposal(
                direction=str(data["direction"]),
                entry=float(data["entry"]),
                stop_loss=float(data["stop_loss"]),
                take_profits=tuple(float(tp) for tp in data["take_profits"]),
                confidence=float(data["confidence"]),
                reason=str(data["reason"]),
                management_hint=str(data.get("management_hint") or ""),
            )
        except (TypeError, ValueError) as exc:
            raise DecisionServiceError(f"Malformed decision response: {exc}") from exc
