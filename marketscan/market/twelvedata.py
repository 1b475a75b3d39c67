"""Twelve Data REST API async client.

Fetches OHLCV bars for the scanner and the signal evaluator.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

import httpx

from marketscan.errors import InsufficientDataError, MarketDataError
from marketscan.market.models import Bar

logger = logging.getLogger("marketscan.market_data")

MIN_BARS = 50

TIMEFRAME_MAP: dict[str, str] = {
    "1m": "1min",
    "5m": "5min",
    "15m": "15min",
    "30m": "30min",
    "1h": "1h",
    "2h": "2h",
    "4h": "4h",
    "1d": "1day",
    "1w": "1week",
    "1M": "1month",
}

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}
_NO_RETRY_MARKERS = ("run out of API credits", "rate limit")


@runtime_checkable
class BarSource(Protocol):
    """Anything that can supply bars oldest-first."""

    async def fetch_bars(self, symbol: str, timeframe: str, count: int) -> list[Bar]:
        ...


def format_symbol(symbol: str) -> str:
    """``EURUSD`` → ``EUR/USD``, ``BTCUSD`` → ``BTC/USD``.

    Symbols that already contain a slash, or are shorter than six
    characters, are returned unchanged.
    """
    if "/" in symbol or len(symbol) < 6:
        return symbol
    return f"{symbol[:-3]}/{symbol[-3:]}"


def _parse_datetime(value: str) -> datetime:
    # Intraday bars come as "YYYY-MM-DD HH:MM:SS", daily ones as "YYYY-MM-DD".
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class TwelveDataClient:
    """Async client for the Twelve Data ``time_series`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.twelvedata.com",
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._retry_base_delay = retry_base_delay

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _get_with_retry(self, url: str, params: dict) -> httpx.Response:
        """GET with exponential-backoff retry on 429/5xx and transport errors."""
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, params=params, timeout=10.0)

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = self._retry_base_delay * (2 ** attempt)
                    logger.warning(
                        "Twelve Data GET %s returned %d, retry %d/%d in %.1fs",
                        url, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    await asyncio.sleep(delay)
                    continue

                if resp.is_error:
                    raise MarketDataError(
                        f"Twelve Data GET {url} returned {resp.status_code}"
                    )
                return resp

            except httpx.TransportError as exc:
                delay = self._retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Twelve Data GET %s transport error (%s), retry %d/%d in %.1fs",
                    url, exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise MarketDataError(
            f"Failed to fetch data after {_MAX_RETRIES} attempts: {last_exc}",
            rate_limited=isinstance(last_exc, httpx.HTTPStatusError)
            and last_exc.response.status_code == 429,
        )

    # ── Bars ─────────────────────────────────────────────────────────────

    async def fetch_bars(self, symbol: str, timeframe: str, count: int = 100) -> list[Bar]:
        """Fetch *count* bars for *symbol* at *timeframe*.

        Args:
            symbol: e.g. ``"EURUSD"`` or ``"EUR/USD"``
            timeframe: one of ``TIMEFRAME_MAP``'s keys, e.g. ``"1h"``
            count: number of bars to request

        Returns:
            List of ``Bar`` objects ordered oldest-first.  Callers must still
            run ``validate_bars`` on the result.

        Raises:
            MarketDataError: unknown timeframe, HTTP failure or API error
                payload.  Credit / rate-limit messages are never retried.
            InsufficientDataError: fewer than 50 bars returned.
        """
        interval = TIMEFRAME_MAP.get(timeframe)
        if interval is None:
            raise MarketDataError(f"Invalid timeframe: {timeframe}")

        api_symbol = format_symbol(symbol)
        url = f"{self._base_url}/time_series"
        params = {
            "symbol": api_symbol,
            "interval": interval,
            "outputsize": count,
            "apikey": self._api_key,
            "format": "JSON",
        }

        resp = await self._get_with_retry(url, params)
        data = resp.json()

        if data.get("status") == "error":
            message = data.get("message") or "API returned error"
            rate_limited = any(m in message for m in _NO_RETRY_MARKERS)
            raise MarketDataError(message, rate_limited=rate_limited)

        values = data.get("values")
        if not isinstance(values, list):
            raise MarketDataError(f"No data returned for {symbol} {timeframe}")

        bars: list[Bar] = []
        for v in values:
            bars.append(
                Bar(
                    timestamp=_parse_datetime(v["datetime"]),
                    open=float(v["open"]),
                    high=float(v["high"]),
                    low=float(v["low"]),
                    close=float(v["close"]),
                    volume=float(v.get("volume") or 0),
                )
            )
        # Newest first on the wire
        bars.reverse()

        if len(bars) < MIN_BARS:
            raise InsufficientDataError(
                f"Insufficient data: only {len(bars)} bars returned for {symbol} {timeframe}"
            )

        logger.info("Fetched %d bars for %s (%s) %s", len(bars), symbol, api_symbol, timeframe)
        return bars
