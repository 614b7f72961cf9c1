"""ConfluenceDesk — application configuration.

Loads .env variables into a typed config object.
Validates variable values on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_DATA_SOURCES = ("cryptocompare", "simulated")
_GRANULARITIES = {"hour": 24, "day": 1}
_ANALYSIS_PROVIDERS = ("vwap", "gemini")


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    data_source: str  # "cryptocompare" or "simulated"
    cryptocompare_api_key: str
    candle_granularity: str  # "hour" or "day"
    history_depth: int
    candles_per_day: int
    fib_lookback_days: int
    signal_min_candles: int
    poll_interval_seconds: int
    analysis_provider: str  # "vwap" or "gemini"
    gemini_api_key: str
    gemini_model: str
    sim_seed: int
    sim_start_price: float
    log_level: str
    health_port: int

    @property
    def cryptocompare_base_url(self) -> str:
        return "https://min-api.cryptocompare.com"


def _int_var(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


def _choice_var(name: str, default: str, choices) -> str:
    value = os.environ.get(name, default).strip().lower()
    if value not in choices:
        raise ValueError(
            f"{name} must be one of {', '.join(choices)}, got '{value}'"
        )
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value is invalid, or when ``GEMINI_API_KEY`` is missing while the
    Gemini analysis provider is selected.
    """
    load_dotenv(dotenv_path=env_path)

    data_source = _choice_var("DATA_SOURCE", "cryptocompare", _DATA_SOURCES)
    granularity = _choice_var("CANDLE_GRANULARITY", "hour", _GRANULARITIES)
    analysis_provider = _choice_var("ANALYSIS_PROVIDER", "vwap", _ANALYSIS_PROVIDERS)

    gemini_api_key = os.environ.get("GEMINI_API_KEY", "")
    if analysis_provider == "gemini" and not gemini_api_key:
        raise ValueError(
            "Missing required environment variable(s): GEMINI_API_KEY"
        )

    candles_per_day = _int_var(
        "CANDLES_PER_DAY", str(_GRANULARITIES[granularity])
    )
    if candles_per_day <= 0:
        raise ValueError(f"CANDLES_PER_DAY must be positive, got {candles_per_day}")

    history_depth = _int_var("HISTORY_DEPTH", "2400")
    if history_depth <= 0:
        raise ValueError(f"HISTORY_DEPTH must be positive, got {history_depth}")

    try:
        sim_start_price = float(os.environ.get("SIM_START_PRICE", "95000"))
    except ValueError:
        raise ValueError("SIM_START_PRICE must be a number") from None

    return Config(
        data_source=data_source,
        cryptocompare_api_key=os.environ.get("CRYPTOCOMPARE_API_KEY", ""),
        candle_granularity=granularity,
        history_depth=history_depth,
        candles_per_day=candles_per_day,
        fib_lookback_days=_int_var("FIB_LOOKBACK_DAYS", "90"),
        signal_min_candles=_int_var("SIGNAL_MIN_CANDLES", "200"),
        poll_interval_seconds=_int_var("POLL_INTERVAL_SECONDS", "10"),
        analysis_provider=analysis_provider,
        gemini_api_key=gemini_api_key,
        gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
        sim_seed=_int_var("SIM_SEED", "42"),
        sim_start_price=sim_start_price,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        health_port=_int_var("HEALTH_PORT", "8080"),
    )
