"""MarketScan — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


_REQUIRED_VARS = [
    "TWELVE_DATA_API_KEY",
]

_VALID_MODES = {"conservative", "aggressive"}


def _csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    twelve_data_api_key: str
    twelve_data_base_url: str
    symbols: tuple[str, ...]
    timeframes: tuple[str, ...]
    modes: tuple[str, ...]
    candle_count: int
    fast_ma_period: int
    slow_ma_period: int
    scan_interval_seconds: int
    evaluation_interval_seconds: int
    expiration_candles: int
    timeout_candles: int
    confidence_threshold: float
    min_atr_multiple: float
    max_atr_multiple: float
    decision_service_url: Optional[str]
    telegram_bot_token: Optional[str]
    telegram_chat_id: Optional[str]
    db_path: str
    log_level: str
    api_port: int

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent, or naming the offending value when a mode
    is unknown.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    modes = _csv(os.environ.get("MODES", "conservative,aggressive"))
    unknown = [m for m in modes if m not in _VALID_MODES]
    if unknown:
        raise ValueError(f"Unknown mode(s) in MODES: {', '.join(unknown)}")

    return Config(
        twelve_data_api_key=os.environ["TWELVE_DATA_API_KEY"],
        twelve_data_base_url=os.environ.get(
            "TWELVE_DATA_BASE_URL", "https://api.twelvedata.com"
        ),
        symbols=_csv(os.environ.get("SYMBOLS", "EURUSD,GBPUSD,USDJPY,XAUUSD,BTCUSD")),
        timeframes=_csv(os.environ.get("TIMEFRAMES", "15m,1h,4h")),
        modes=modes,
        candle_count=int(os.environ.get("CANDLE_COUNT", "250")),
        fast_ma_period=int(os.environ.get("FAST_MA_PERIOD", "50")),
        slow_ma_period=int(os.environ.get("SLOW_MA_PERIOD", "200")),
        scan_interval_seconds=int(os.environ.get("SCAN_INTERVAL_SECONDS", "120")),
        evaluation_interval_seconds=int(
            os.environ.get("EVALUATION_INTERVAL_SECONDS", "60")
        ),
        expiration_candles=int(os.environ.get("EXPIRATION_CANDLES", "20")),
        timeout_candles=int(os.environ.get("TIMEOUT_CANDLES", "100")),
        confidence_threshold=float(os.environ.get("CONFIDENCE_THRESHOLD", "0.6")),
        min_atr_multiple=float(os.environ.get("MIN_ATR_MULTIPLE", "0.5")),
        max_atr_multiple=float(os.environ.get("MAX_ATR_MULTIPLE", "3.0")),
        decision_service_url=os.environ.get("DECISION_SERVICE_URL") or None,
        telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN") or None,
        telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID") or None,
        db_path=os.environ.get("DB_PATH", "data/marketscan.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
    )
