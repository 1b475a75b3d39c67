"""Performance statistics over closed signals, pure functions.

All figures are in R (risk multiples) as recorded in each signal's
outcome detail.
"""

from marketscan.lifecycle.models import BREAKEVEN, LOSS, TIMEOUT, WIN, Signal

PROFIT_FACTOR_CAP = 999.0
CATEGORIES = ("symbol", "timeframe", "mode")


def _r(signal: Signal) -> float:
    return signal.outcome_detail.risk_multiple if signal.outcome_detail else 0.0


def calculate_overview(signals: list[Signal]) -> dict:
    """Compute aggregate performance metrics.

    Win rate only counts decided trades (wins and losses).  Profit factor
    is gross winning R over gross losing R, capped at 999 when nothing was
    lost.  Max drawdown is the deepest peak-to-trough fall of cumulative R.

    Returns:
        Dict with total_trades, wins, losses, timeouts, breakevens,
        win_rate, avg_r, total_r, profit_factor, max_drawdown_r.
    """
    wins = sum(1 for s in signals if s.outcome == WIN)
    losses = sum(1 for s in signals if s.outcome == LOSS)
    timeouts = sum(1 for s in signals if s.outcome == TIMEOUT)
    breakevens = sum(1 for s in signals if s.outcome == BREAKEVEN)

    rs = [_r(s) for s in signals]
    total_r = sum(rs)
    decided = wins + losses
    win_rate = wins / decided if decided else 0.0
    avg_r = total_r / len(rs) if rs else 0.0

    gross_profit = sum(r for r in rs if r > 0)
    gross_loss = abs(sum(r for r in rs if r < 0))
    if gross_loss > 0:
        profit_factor = min(gross_profit / gross_loss, PROFIT_FACTOR_CAP)
    elif gross_profit > 0:
        profit_factor = PROFIT_FACTOR_CAP
    else:
        profit_factor = 0.0

    peak = 0.0
    equity = 0.0
    max_dd = 0.0
    for r in rs:
        equity += r
        peak = max(peak, equity)
        max_dd = max(max_dd, peak - equity)

    return {
        "total_trades": len(signals),
        "wins": wins,
        "losses": losses,
        "timeouts": timeouts,
        "breakevens": breakevens,
        "win_rate": round(win_rate, 4),
        "avg_r": round(avg_r, 2),
        "total_r": round(total_r, 2),
        "profit_factor": round(profit_factor, 2),
        "max_drawdown_r": round(max_dd, 2),
    }


def calculate_equity_curve(signals: list[Signal]) -> list[dict]:
    """Cumulative R after each close, in close order."""
    ordered = sorted(signals, key=lambda s: (s.closed_at is None, s.closed_at, s.id or 0))
    curve: list[dict] = []
    cumulative = 0.0
    for s in ordered:
        cumulative += _r(s)
        curve.append({
            "signal_id": s.id,
            "closed_at": s.closed_at.isoformat() if s.closed_at else None,
            "r": _r(s),
            "cumulative_r": round(cumulative, 2),
        })
    return curve


def calculate_by_category(signals: list[Signal], category: str) -> list[dict]:
    """Overview metrics grouped by ``symbol``, ``timeframe`` or ``mode``."""
    if category not in CATEGORIES:
        raise ValueError(
            f"Invalid category: {category}. Must be one of: {', '.join(CATEGORIES)}"
        )

    groups: dict[str, list[Signal]] = {}
    for s in signals:
        groups.setdefault(getattr(s, category), []).append(s)

    return [
        {category: key, **calculate_overview(group)}
        for key, group in sorted(groups.items())
    ]
