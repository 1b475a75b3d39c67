"""Read-only API routers — /signals and /stats endpoints.

No business logic.  Delegates to the signal repo attached to the app
state and to the pure functions in ``marketscan.stats``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from marketscan.stats import (
    CATEGORIES,
    calculate_by_category,
    calculate_equity_curve,
    calculate_overview,
)

logger = logging.getLogger("marketscan.api")
router = APIRouter()


def _repo(request: Request):
    return request.app.state.signal_repo


# ── Signals ──────────────────────────────────────────────────────────────


@router.get("/signals")
async def get_signals(
    request: Request,
    symbol: Optional[str] = Query(default=None),
    timeframe: Optional[str] = Query(default=None),
    mode: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    outcome: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    """Return a page of signals, newest first."""
    filters = {
        "symbol": symbol,
        "timeframe": timeframe,
        "mode": mode,
        "status": status,
        "outcome": outcome,
    }
    page = _repo(request).get_signals(filters=filters, limit=limit, offset=offset)
    return {
        "signals": [s.to_dict() for s in page["signals"]],
        "total": page["total"],
        "limit": limit,
        "offset": offset,
    }


@router.get("/signals/{signal_id}")
async def get_signal(request: Request, signal_id: int):
    signal = _repo(request).get_signal(signal_id)
    if signal is None:
        raise HTTPException(status_code=404, detail="Signal not found")
    return signal.to_dict()


# ── Stats ────────────────────────────────────────────────────────────────


@router.get("/stats/overview")
async def get_overview(request: Request):
    return calculate_overview(_repo(request).get_closed_signals())


@router.get("/stats/equity-curve")
async def get_equity_curve(request: Request):
    return {"points": calculate_equity_curve(_repo(request).get_closed_signals())}


@router.get("/stats/by/{category}")
async def get_stats_by_category(request: Request, category: str):
    """Per-symbol, per-timeframe or per-mode breakdown."""
    if category not in CATEGORIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category. Must be one of: {', '.join(CATEGORIES)}",
        )
    signals = _repo(request).get_closed_signals()
    return {"category": category, "groups": calculate_by_category(signals, category)}
