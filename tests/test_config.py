"""Tests for environment-driven configuration."""

import pytest

from confluence.config import load_config

_VARS = (
    "DATA_SOURCE",
    "CRYPTOCOMPARE_API_KEY",
    "CANDLE_GRANULARITY",
    "HISTORY_DEPTH",
    "CANDLES_PER_DAY",
    "FIB_LOOKBACK_DAYS",
    "SIGNAL_MIN_CANDLES",
    "POLL_INTERVAL_SECONDS",
    "ANALYSIS_PROVIDER",
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "SIM_SEED",
    "SIM_START_PRICE",
    "LOG_LEVEL",
    "HEALTH_PORT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every config variable and point load_config at an empty .env."""
    for name in _VARS:
        # setenv first so the teardown also removes values loaded from a .env
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return str(tmp_path / "missing.env")


class TestDefaults:
    def test_defaults(self, clean_env):
        config = load_config(clean_env)
        assert config.data_source == "cryptocompare"
        assert config.candle_granularity == "hour"
        assert config.candles_per_day == 24
        assert config.history_depth == 2400
        assert config.fib_lookback_days == 90
        assert config.signal_min_candles == 200
        assert config.poll_interval_seconds == 10
        assert config.analysis_provider == "vwap"
        assert config.gemini_model == "gemini-2.5-flash"
        assert config.sim_seed == 42
        assert config.sim_start_price == 95_000.0
        assert config.log_level == "INFO"
        assert config.health_port == 8080
        assert config.cryptocompare_base_url == "https://min-api.cryptocompare.com"

    def test_daily_granularity_sets_candles_per_day(self, clean_env, monkeypatch):
        monkeypatch.setenv("CANDLE_GRANULARITY", "day")
        assert load_config(clean_env).candles_per_day == 1

    def test_explicit_candles_per_day(self, clean_env, monkeypatch):
        monkeypatch.setenv("CANDLES_PER_DAY", "6")
        assert load_config(clean_env).candles_per_day == 6

    def test_choice_is_case_insensitive(self, clean_env, monkeypatch):
        monkeypatch.setenv("DATA_SOURCE", "Simulated")
        assert load_config(clean_env).data_source == "simulated"


class TestDotenv:
    def test_reads_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DATA_SOURCE=simulated\nSIM_SEED=7\n")
        config = load_config(str(env_file))
        assert config.data_source == "simulated"
        assert config.sim_seed == 7


class TestValidation:
    def test_invalid_data_source(self, clean_env, monkeypatch):
        monkeypatch.setenv("DATA_SOURCE", "binance")
        with pytest.raises(ValueError, match="DATA_SOURCE"):
            load_config(clean_env)

    def test_invalid_granularity(self, clean_env, monkeypatch):
        monkeypatch.setenv("CANDLE_GRANULARITY", "minute")
        with pytest.raises(ValueError, match="CANDLE_GRANULARITY"):
            load_config(clean_env)

    def test_gemini_requires_key(self, clean_env, monkeypatch):
        monkeypatch.setenv("ANALYSIS_PROVIDER", "gemini")
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            load_config(clean_env)

    def test_gemini_with_key(self, clean_env, monkeypatch):
        monkeypatch.setenv("ANALYSIS_PROVIDER", "gemini")
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        assert load_config(clean_env).gemini_api_key == "test-key"

    def test_non_integer(self, clean_env, monkeypatch):
        monkeypatch.setenv("HISTORY_DEPTH", "lots")
        with pytest.raises(ValueError, match="HISTORY_DEPTH"):
            load_config(clean_env)

    @pytest.mark.parametrize("name", ["HISTORY_DEPTH", "CANDLES_PER_DAY"])
    def test_non_positive(self, clean_env, monkeypatch, name):
        monkeypatch.setenv(name, "0")
        with pytest.raises(ValueError, match=name):
            load_config(clean_env)

    def test_bad_start_price(self, clean_env, monkeypatch):
        monkeypatch.setenv("SIM_START_PRICE", "cheap")
        with pytest.raises(ValueError, match="SIM_START_PRICE"):
            load_config(clean_env)
