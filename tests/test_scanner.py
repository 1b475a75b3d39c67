"""Tests for the scan cycle with a mocked bar source, decision provider and notifier."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from marketscan.config import Config
from marketscan.decision.base import TradeProposal
from marketscan.errors import InsufficientDataError, MarketDataError
from marketscan.market.models import Bar
from marketscan.repos.db import init_db
from marketscan.repos.signal_repo import SignalRepo
from marketscan.scanner import Scanner

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
_NOW = datetime(2025, 1, 3, 12, 0, 0, 123456, tzinfo=timezone.utc)


def _bar(i: int, o: float, h: float, l: float, c: float) -> Bar:
    return Bar(timestamp=_T0 + timedelta(hours=i), open=o, high=h, low=l, close=c)


def _uptrend_bars(n: int = 60, base: float = 1.1000, unit: float = 0.0010) -> list[Bar]:
    """Sawtooth uptrend ending on a bullish engulfing bar (last close 1.1330)."""
    offsets = [3, 6, 9, 7, 5, 3]

    def close(i: int) -> float:
        cycle, pos = divmod(i + 1, 6)
        return base + unit * (3 * cycle + offsets[pos])

    bars = []
    for i in range(n):
        o, c = close(i - 1), close(i)
        if c > o:
            bars.append(_bar(i, o, c + 0.0002, o, c))
        else:
            bars.append(_bar(i, o, o, c - 0.0002, c))
    return bars


def _make_config(**overrides) -> Config:
    fields = dict(
        twelve_data_api_key="test-key",
        twelve_data_base_url="https://api.twelvedata.com",
        symbols=("EURUSD",),
        timeframes=("1h",),
        modes=("conservative",),
        candle_count=60,
        fast_ma_period=20,
        slow_ma_period=50,
        scan_interval_seconds=120,
        evaluation_interval_seconds=60,
        expiration_candles=20,
        timeout_candles=100,
        confidence_threshold=0.6,
        min_atr_multiple=0.5,
        max_atr_multiple=3.0,
        decision_service_url=None,
        telegram_bot_token=None,
        telegram_chat_id=None,
        db_path=":memory:",
        log_level="INFO",
        api_port=8080,
    )
    fields.update(overrides)
    return Config(**fields)


def _proposal(**overrides) -> TradeProposal:
    fields = dict(
        direction="long",
        entry=1.1330,
        stop_loss=1.1300,
        take_profits=(1.1360, 1.1390),
        confidence=0.8,
        reason="Engulfing continuation",
        management_hint="Move stop to entry at TP1",
    )
    fields.update(overrides)
    return TradeProposal(**fields)


def _bar_source(bars=None, side_effect=None) -> AsyncMock:
    source = AsyncMock()
    if side_effect is not None:
        source.fetch_bars.side_effect = side_effect
    else:
        source.fetch_bars.return_value = bars if bars is not None else _uptrend_bars()
    return source


def _decision(proposal=None) -> AsyncMock:
    decision = AsyncMock()
    decision.decide.return_value = proposal
    return decision


@pytest.fixture
def repo(tmp_path):
    db_path = str(tmp_path / "test.db")
    init_db(db_path)
    return SignalRepo(db_path)


# ── Tests ────────────────────────────────────────────────────────────────


class TestScanCycle:
    @pytest.mark.asyncio
    async def test_candidate_becomes_signal(self, repo):
        notifier = AsyncMock()
        decision = _decision(_proposal())
        scanner = Scanner(_make_config(), _bar_source(), repo, notifier, decision)

        result = await scanner.run_once(_NOW)

        assert result == {
            "action": "scanned", "pairs": 1, "candidates": 1, "signals": 1, "errors": 0,
        }
        state, reason, mode = decision.decide.call_args.args
        assert state.symbol == "EURUSD"
        assert "engulfing" in reason
        assert mode == "conservative"

        stored = repo.get_signals_by_status("pending")
        assert len(stored) == 1
        signal = stored[0]
        assert signal.entry == 1.1330
        assert signal.take_profits == (1.1360, 1.1390)
        assert signal.candidate_reason == reason
        assert signal.created_at == _NOW.replace(microsecond=0)
        notifier.notify_created.assert_awaited_once()
        assert notifier.notify_created.call_args.args[0].id == signal.id

    @pytest.mark.asyncio
    async def test_fetch_uses_configured_count(self, repo):
        source = _bar_source()
        scanner = Scanner(_make_config(candle_count=75), source, repo, AsyncMock())
        await scanner.run_once(_NOW)
        source.fetch_bars.assert_awaited_once_with("EURUSD", "1h", 75)

    @pytest.mark.asyncio
    async def test_without_decision_provider_nothing_stored(self, repo):
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock())
        result = await scanner.run_once(_NOW)
        assert result["candidates"] == 1
        assert result["signals"] == 0
        assert repo.get_signals()["total"] == 0

    @pytest.mark.asyncio
    async def test_no_trade_answer(self, repo):
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock(), _decision(None))
        result = await scanner.run_once(_NOW)
        assert result["signals"] == 0

    @pytest.mark.asyncio
    async def test_low_confidence_discarded(self, repo):
        decision = _decision(_proposal(confidence=0.5))
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock(), decision)
        result = await scanner.run_once(_NOW)
        assert result["signals"] == 0
        assert repo.get_signals()["total"] == 0

    @pytest.mark.asyncio
    async def test_invalid_proposal_discarded(self, repo, caplog):
        # Stop far beyond 3 ATR
        decision = _decision(_proposal(stop_loss=1.1200))
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock(), decision)
        result = await scanner.run_once(_NOW)
        assert result["signals"] == 0
        assert "SL distance too wide" in caplog.text

    @pytest.mark.asyncio
    async def test_duplicate_scan_not_stored_twice(self, repo):
        decision = _decision(_proposal())
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock(), decision)
        await scanner.run_once(_NOW)
        second = await scanner.run_once(_NOW)
        assert second["signals"] == 0
        assert repo.get_signals()["total"] == 1

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_signal(self, repo):
        notifier = AsyncMock()
        notifier.notify_created.side_effect = RuntimeError("telegram down")
        scanner = Scanner(_make_config(), _bar_source(), repo, notifier, _decision(_proposal()))
        result = await scanner.run_once(_NOW)
        assert result["signals"] == 1
        assert repo.get_signals()["total"] == 1

    @pytest.mark.asyncio
    async def test_decision_error_isolated_per_mode(self, repo):
        from marketscan.errors import DecisionServiceError

        decision = AsyncMock()
        decision.decide.side_effect = [DecisionServiceError("timeout"), _proposal()]
        config = _make_config(modes=("conservative", "aggressive"))
        scanner = Scanner(config, _bar_source(), repo, AsyncMock(), decision)
        result = await scanner.run_once(_NOW)
        assert result["candidates"] == 2
        assert result["signals"] == 1
        assert repo.get_signals()["signals"][0].mode == "aggressive"


class TestScanErrors:
    @pytest.mark.asyncio
    async def test_insufficient_data_is_not_an_error(self, repo):
        source = _bar_source(side_effect=InsufficientDataError("only 12 bars"))
        scanner = Scanner(_make_config(), source, repo, AsyncMock())
        result = await scanner.run_once(_NOW)
        assert result["pairs"] == 1
        assert result["errors"] == 0

    @pytest.mark.asyncio
    async def test_invalid_bars_rejected(self, repo):
        bars = _uptrend_bars()
        bars[10], bars[11] = bars[11], bars[10]
        scanner = Scanner(_make_config(), _bar_source(bars), repo, AsyncMock(), _decision(_proposal()))
        result = await scanner.run_once(_NOW)
        assert result["errors"] == 1
        assert result["candidates"] == 0

    @pytest.mark.asyncio
    async def test_one_failing_pair_does_not_stop_others(self, repo):
        source = AsyncMock()
        source.fetch_bars.side_effect = [MarketDataError("503"), _uptrend_bars()]
        config = _make_config(symbols=("GBPUSD", "EURUSD"))
        scanner = Scanner(config, source, repo, AsyncMock(), _decision(_proposal()))
        result = await scanner.run_once(_NOW)
        assert result["pairs"] == 2
        assert result["errors"] == 1
        assert result["signals"] == 1


class TestCycleControl:
    @pytest.mark.asyncio
    async def test_overlapping_cycle_skipped(self, repo):
        release = asyncio.Event()
        started = asyncio.Event()

        async def _slow_fetch(symbol, timeframe, count):
            started.set()
            await release.wait()
            return _uptrend_bars()

        source = AsyncMock()
        source.fetch_bars.side_effect = _slow_fetch
        scanner = Scanner(_make_config(), source, repo, AsyncMock())

        first = asyncio.create_task(scanner.run_once(_NOW))
        await started.wait()
        second = await scanner.run_once(_NOW)
        release.set()
        first_result = await first

        assert second == {"action": "skipped", "reason": "cycle_in_progress"}
        assert first_result["action"] == "scanned"
        assert scanner.cycle_count == 1

    @pytest.mark.asyncio
    async def test_run_with_max_cycles(self, repo):
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock())
        results = await scanner.run(poll_interval=0, max_cycles=2)
        assert len(results) == 2
        assert all(r["action"] == "scanned" for r in results)

    @pytest.mark.asyncio
    async def test_run_records_cycle_errors(self, repo, monkeypatch):
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock())

        async def _boom(utc_now=None):
            raise RuntimeError("boom")

        monkeypatch.setattr(scanner, "_run_cycle", _boom)
        results = await scanner.run(poll_interval=0, max_cycles=1)
        assert results == [{"action": "error", "reason": "boom"}]

    @pytest.mark.asyncio
    async def test_unbounded_run_keeps_only_last_result(self, repo, monkeypatch):
        scanner = Scanner(_make_config(), _bar_source(), repo, AsyncMock())
        calls = 0

        async def _counting(utc_now=None):
            nonlocal calls
            calls += 1
            if calls == 3:
                scanner.stop()
            return {"action": "scanned", "cycle": calls}

        monkeypatch.setattr(scanner, "_run_cycle", _counting)
        results = await scanner.run(poll_interval=0, max_cycles=0)
        assert calls == 3
        assert results == [{"action": "scanned", "cycle": 3}]
