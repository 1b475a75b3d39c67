"""Tests for performance statistics over closed signals."""

from datetime import datetime, timedelta, timezone

import pytest

from marketscan.lifecycle.models import OutcomeDetail, Signal
from marketscan.stats import calculate_by_category, calculate_equity_curve, calculate_overview

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _closed(signal_id: int, outcome: str, r: float, **overrides) -> Signal:
    closed_at = _T0 + timedelta(hours=signal_id)
    hit = {"win": "tp1", "loss": "sl", "timeout": "timeout", "breakeven": "tp1"}[outcome]
    fields = dict(
        symbol="EURUSD",
        timeframe="1h",
        mode="conservative",
        direction="long",
        entry=1.1000,
        stop_loss=1.0950,
        take_profits=(1.1100,),
        created_at=_T0,
        status=outcome,
        triggered_at=_T0,
        closed_at=closed_at,
        outcome=outcome,
        outcome_detail=OutcomeDetail(hit=hit, risk_multiple=r, hit_price=1.1, hit_time=closed_at),
        id=signal_id,
    )
    fields.update(overrides)
    return Signal(**fields)


class TestOverview:
    def test_empty(self):
        stats = calculate_overview([])
        assert stats["total_trades"] == 0
        assert stats["win_rate"] == 0.0
        assert stats["avg_r"] == 0.0
        assert stats["profit_factor"] == 0.0
        assert stats["max_drawdown_r"] == 0.0

    def test_mixed_results(self):
        signals = [
            _closed(1, "win", 2.0),
            _closed(2, "loss", -1.0),
            _closed(3, "loss", -1.0),
            _closed(4, "win", 3.0),
            _closed(5, "timeout", 0.0),
        ]
        stats = calculate_overview(signals)
        assert stats["total_trades"] == 5
        assert stats["wins"] == 2
        assert stats["losses"] == 2
        assert stats["timeouts"] == 1
        # Timeouts do not dilute the win rate
        assert stats["win_rate"] == 0.5
        assert stats["total_r"] == 3.0
        assert stats["avg_r"] == 0.6
        assert stats["profit_factor"] == 2.5
        assert stats["max_drawdown_r"] == 2.0

    def test_no_losses_caps_profit_factor(self):
        stats = calculate_overview([_closed(1, "win", 2.0), _closed(2, "win", 1.5)])
        assert stats["profit_factor"] == 999.0
        assert stats["win_rate"] == 1.0

    def test_breakeven_counted_separately(self):
        stats = calculate_overview([_closed(1, "breakeven", 0.0), _closed(2, "loss", -1.0)])
        assert stats["breakevens"] == 1
        assert stats["win_rate"] == 0.0
        assert stats["max_drawdown_r"] == 1.0


class TestEquityCurve:
    def test_cumulative_in_close_order(self):
        signals = [
            _closed(3, "loss", -1.0),
            _closed(1, "win", 2.0),
            _closed(2, "win", 1.5),
        ]
        curve = calculate_equity_curve(signals)
        assert [p["signal_id"] for p in curve] == [1, 2, 3]
        assert [p["cumulative_r"] for p in curve] == [2.0, 3.5, 2.5]
        assert curve[0]["closed_at"] == (_T0 + timedelta(hours=1)).isoformat()

    def test_empty(self):
        assert calculate_equity_curve([]) == []


class TestByCategory:
    def test_group_by_symbol(self):
        signals = [
            _closed(1, "win", 2.0, symbol="XAUUSD"),
            _closed(2, "loss", -1.0),
            _closed(3, "win", 1.0),
        ]
        groups = calculate_by_category(signals, "symbol")
        assert [g["symbol"] for g in groups] == ["EURUSD", "XAUUSD"]
        assert groups[0]["total_trades"] == 2
        assert groups[0]["total_r"] == 0.0
        assert groups[1]["win_rate"] == 1.0

    def test_group_by_mode(self):
        signals = [_closed(1, "win", 2.0, mode="aggressive"), _closed(2, "loss", -1.0)]
        groups = calculate_by_category(signals, "mode")
        assert [g["mode"] for g in groups] == ["aggressive", "conservative"]

    def test_invalid_category(self):
        with pytest.raises(ValueError):
            calculate_by_category([], "direction")
