"""Tests for the read-only API — /signals, /stats and /health."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from marketscan.lifecycle.models import OutcomeDetail, Signal
from marketscan.main import create_app
from marketscan.repos.db import init_db
from marketscan.repos.signal_repo import SignalRepo

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ── Fixtures ─────────────────────────────────────────────────────────────


def _signal(hours: int, **overrides) -> Signal:
    base = Signal(
        symbol="EURUSD",
        timeframe="1h",
        mode="conservative",
        direction="long",
        entry=1.1000,
        stop_loss=1.0950,
        take_profits=(1.1100, 1.1200),
        created_at=_T0 + timedelta(hours=hours),
        confidence=0.7,
        reason="test",
    )
    return replace(base, **overrides)


def _close(repo: SignalRepo, signal: Signal, outcome: str, r: float, hours: int) -> None:
    when = _T0 + timedelta(hours=hours)
    repo.update_signal(replace(
        signal,
        status=outcome,
        triggered_at=signal.created_at,
        closed_at=when,
        outcome=outcome,
        outcome_detail=OutcomeDetail(
            hit="tp1" if r > 0 else "sl", risk_multiple=r, hit_price=1.1, hit_time=when
        ),
    ))


@pytest.fixture
def repo(tmp_path):
    db_path = str(tmp_path / "test.db")
    init_db(db_path)
    repo = SignalRepo(db_path)

    win = _signal(0)
    win = replace(win, id=repo.insert_signal(win))
    loss = _signal(1, symbol="XAUUSD", entry=2000.0, stop_loss=1990.0,
                   take_profits=(2020.0,), mode="aggressive")
    loss = replace(loss, id=repo.insert_signal(loss))
    repo.insert_signal(_signal(2))  # still pending

    _close(repo, win, "win", 2.0, hours=5)
    _close(repo, loss, "loss", -1.0, hours=6)
    return repo


@pytest.fixture
def client(repo):
    return TestClient(create_app(repo))


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        client = TestClient(create_app(MagicMock()))
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestSignalsEndpoint:
    def test_list_newest_first(self, client):
        resp = client.get("/signals")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["limit"] == 50
        assert data["offset"] == 0
        created = [s["created_at"] for s in data["signals"]]
        assert created == sorted(created, reverse=True)

    def test_filters(self, client):
        data = client.get("/signals", params={"status": "pending"}).json()
        assert data["total"] == 1
        data = client.get("/signals", params={"symbol": "XAUUSD"}).json()
        assert data["signals"][0]["outcome"] == "loss"
        assert data["signals"][0]["outcome_detail"]["risk_multiple"] == -1.0

    def test_pagination(self, client):
        data = client.get("/signals", params={"limit": 1, "offset": 1}).json()
        assert data["total"] == 3
        assert len(data["signals"]) == 1

    def test_limit_bounds(self, client):
        assert client.get("/signals", params={"limit": 0}).status_code == 422
        assert client.get("/signals", params={"limit": 501}).status_code == 422

    def test_single_signal(self, client):
        first = client.get("/signals", params={"symbol": "EURUSD", "status": "win"}).json()
        signal_id = first["signals"][0]["id"]
        resp = client.get(f"/signals/{signal_id}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == signal_id
        assert body["take_profits"] == [1.11, 1.12]
        assert body["outcome_detail"]["hit"] == "tp1"

    def test_single_signal_not_found(self, client):
        resp = client.get("/signals/9999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Signal not found"


class TestStatsEndpoints:
    def test_overview(self, client):
        data = client.get("/stats/overview").json()
        assert data["total_trades"] == 2
        assert data["wins"] == 1
        assert data["losses"] == 1
        assert data["win_rate"] == 0.5
        assert data["total_r"] == 1.0
        assert data["profit_factor"] == 2.0

    def test_equity_curve(self, client):
        points = client.get("/stats/equity-curve").json()["points"]
        assert [p["cumulative_r"] for p in points] == [2.0, 1.0]

    def test_by_category(self, client):
        data = client.get("/stats/by/mode").json()
        assert data["category"] == "mode"
        assert [g["mode"] for g in data["groups"]] == ["aggressive", "conservative"]

    def test_invalid_category(self, client):
        resp = client.get("/stats/by/direction")
        assert resp.status_code == 400
