"""Tests for the CryptoCompare, exchange-rate and analysis providers (mocked HTTP and SDK)."""

import json
from types import SimpleNamespace

import httpx
import pytest

from confluence.config import Config
from confluence.providers.analysis import (
    AnalysisProvider,
    GeminiAnalysisClient,
    VwapLevelAnalysis,
    build_analysis_provider,
    parse_analysis,
)
from confluence.providers.cryptocompare_client import CryptoCompareClient
from confluence.providers.http import request_with_retry
from confluence.providers.rate_client import ExchangeRateClient
from confluence.strategy.models import VwapData, VwapPeriodValue

_END_TS = 1_735_689_600  # 2025-01-01T00:00:00Z


def _make_config(**overrides) -> Config:
    values = dict(
        data_source="cryptocompare",
        cryptocompare_api_key="",
        candle_granularity="hour",
        history_depth=2400,
        candles_per_day=24,
        fib_lookback_days=90,
        signal_min_candles=200,
        poll_interval_seconds=10,
        analysis_provider="vwap",
        gemini_api_key="",
        gemini_model="gemini-2.5-flash",
        sim_seed=42,
        sim_start_price=95_000.0,
        log_level="INFO",
        health_port=8080,
    )
    values.update(overrides)
    return Config(**values)


def _point(ts: int, close: float = 100.0) -> dict:
    return {
        "time": ts,
        "open": close,
        "high": close + 5,
        "low": close - 5,
        "close": close,
        "volumefrom": 12.5,
        "volumeto": 1250.0,
    }


def _histo_response(points: list[dict]) -> dict:
    return {"Response": "Success", "Message": "", "Data": {"Aggregated": False, "Data": points}}


def _make_vwap(daily=0.0, weekly=0.0, monthly=0.0, annual=0.0) -> VwapData:
    return VwapData(
        daily=VwapPeriodValue(daily, 0.0),
        weekly=VwapPeriodValue(weekly, 0.0),
        monthly=VwapPeriodValue(monthly, 0.0),
        annual=VwapPeriodValue(annual, 0.0),
    )


# ── CryptoCompare candles ────────────────────────────────────────────────


class TestHistoricalCandles:
    @pytest.mark.asyncio
    async def test_parse_candles(self, monkeypatch):
        captured = {}

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            captured.update(url=url, headers=headers, params=params)
            points = [_point(_END_TS - 3600 * k, 100.0 + k) for k in (3, 2, 1, 0)]
            return httpx.Response(200, json=_histo_response(points), request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        client = CryptoCompareClient(_make_config(cryptocompare_api_key="abc"))
        candles = await client.fetch_historical_candles(3)

        assert captured["url"].endswith("/data/v2/histohour")
        assert captured["params"]["fsym"] == "BTC"
        assert captured["params"]["tsym"] == "USD"
        assert captured["params"]["limit"] == 3
        assert "toTs" not in captured["params"]
        assert captured["headers"]["Authorization"] == "Apikey abc"

        assert len(candles) == 3
        assert candles[-1].time.timestamp() == _END_TS
        assert candles[-1].close == 100.0
        assert candles[0].close == 102.0
        assert candles[0].volume == 12.5
        assert candles[0].time.tzinfo is not None

    @pytest.mark.asyncio
    async def test_daily_endpoint(self, monkeypatch):
        captured = {}

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            captured["url"] = url
            return httpx.Response(
                200, json=_histo_response([_point(_END_TS)]), request=httpx.Request("GET", url)
            )

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        client = CryptoCompareClient(_make_config(candle_granularity="day"))
        await client.fetch_historical_candles(1)
        assert captured["url"].endswith("/data/v2/histoday")

    @pytest.mark.asyncio
    async def test_pages_backwards(self, monkeypatch):
        calls = []

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            calls.append(dict(params))
            end = (params.get("toTs", _END_TS) // 3600) * 3600
            limit = params["limit"]
            points = [_point(end - 3600 * k) for k in range(limit, -1, -1)]
            return httpx.Response(200, json=_histo_response(points), request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        client = CryptoCompareClient(_make_config())
        candles = await client.fetch_historical_candles(2500)

        assert len(calls) == 2
        assert calls[0]["limit"] == 2000
        assert calls[1]["limit"] == 499
        assert calls[1]["toTs"] == _END_TS - 2000 * 3600 - 1

        assert len(candles) == 2500
        assert candles[-1].time.timestamp() == _END_TS
        times = [c.time for c in candles]
        assert all(a < b for a, b in zip(times, times[1:]))

    @pytest.mark.asyncio
    async def test_stops_when_history_exhausted(self, monkeypatch):
        """Zero-filled points before listing are dropped; paging stops."""

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            if "toTs" in params:
                points = [{**_point(params["toTs"] - 3600 * k), "close": 0} for k in range(3)]
            else:
                points = [_point(_END_TS - 3600 * k) for k in range(4, -1, -1)]
            return httpx.Response(200, json=_histo_response(points), request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        client = CryptoCompareClient(_make_config())
        candles = await client.fetch_historical_candles(100)
        assert len(candles) == 5

    @pytest.mark.asyncio
    async def test_error_response(self, monkeypatch):
        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            body = {"Response": "Error", "Message": "rate limit", "Data": {}}
            return httpx.Response(200, json=body, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        client = CryptoCompareClient(_make_config())
        with pytest.raises(ValueError, match="rate limit"):
            await client.fetch_historical_candles(10)

    @pytest.mark.asyncio
    async def test_non_positive_depth(self):
        client = CryptoCompareClient(_make_config())
        with pytest.raises(ValueError):
            await client.fetch_historical_candles(0)


class TestLatestPrice:
    @pytest.mark.asyncio
    async def test_price(self, monkeypatch):
        captured = {}

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            captured.update(url=url, params=params)
            return httpx.Response(200, json={"USD": 97_000.5}, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        price = await CryptoCompareClient(_make_config()).fetch_latest_price()
        assert price == 97_000.5
        assert captured["url"].endswith("/data/price")
        assert captured["params"] == {"fsym": "BTC", "tsyms": "USD"}

    @pytest.mark.asyncio
    async def test_invalid_price(self, monkeypatch):
        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            body = {"Response": "Error", "Message": "market does not exist"}
            return httpx.Response(200, json=body, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        with pytest.raises(ValueError):
            await CryptoCompareClient(_make_config()).fetch_latest_price()


# ── Exchange rate ────────────────────────────────────────────────────────


class TestExchangeRate:
    @pytest.mark.asyncio
    async def test_rate(self, monkeypatch):
        captured = {}

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            captured["url"] = url
            body = {"USDBRL": {"code": "USD", "codein": "BRL", "bid": "5.4321", "ask": "5.4330"}}
            return httpx.Response(200, json=body, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        rate = await ExchangeRateClient().fetch_rate()
        assert rate == pytest.approx(5.4321)
        assert captured["url"].endswith("/json/last/USD-BRL")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"USDBRL": {"bid": "n/a"}}, {"USDBRL": {"bid": "0"}}])
    async def test_malformed_rate(self, monkeypatch, body):
        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            return httpx.Response(200, json=body, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        with pytest.raises(ValueError):
            await ExchangeRateClient().fetch_rate()


# ── Retry ────────────────────────────────────────────────────────────────


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_server_error(self, monkeypatch):
        statuses = [503, 200]

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            return httpx.Response(statuses.pop(0), json={"ok": True}, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        resp = await request_with_retry("get", "https://example.test/x", retry_base_delay=0.0)
        assert resp.status_code == 200
        assert statuses == []

    @pytest.mark.asyncio
    async def test_retries_transport_error_then_raises(self, monkeypatch):
        attempts = []

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            attempts.append(url)
            raise httpx.ConnectError("connection refused", request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        with pytest.raises(httpx.ConnectError):
            await request_with_retry("get", "https://example.test/x", retry_base_delay=0.0)
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, monkeypatch):
        attempts = []

        async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
            attempts.append(url)
            return httpx.Response(401, json={}, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

        with pytest.raises(httpx.HTTPStatusError):
            await request_with_retry("get", "https://example.test/x", retry_base_delay=0.0)
        assert len(attempts) == 1


# ── Analysis ─────────────────────────────────────────────────────────────

_GEMINI_ANSWER = {
    "sentiment": "Bullish: price holds above the weekly VWAP.",
    "buyOrders": [
        {"type": "Buy Limit", "price": 95000, "takeProfit": 99000, "stopLoss": 93000, "reason": "Weekly VWAP"},
    ],
    "sellOrders": [
        {"type": "Sell Limit", "price": 101000, "takeProfit": 97000, "reason": "Annual VWAP"},
    ],
}


class _FakeModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    async def generate_content(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        return SimpleNamespace(text=self.text)


class _FakeGenaiClient:
    """Stands in for ``genai.Client``; answers every request with ``reply``."""

    reply = None
    last = None

    def __init__(self, *, api_key):
        self.api_key = api_key
        self.aio = SimpleNamespace(models=_FakeModels(_FakeGenaiClient.reply))
        _FakeGenaiClient.last = self


@pytest.fixture
def fake_genai(monkeypatch):
    monkeypatch.setattr("confluence.providers.analysis.genai.Client", _FakeGenaiClient)
    _FakeGenaiClient.reply = json.dumps(_GEMINI_ANSWER)
    _FakeGenaiClient.last = None
    return _FakeGenaiClient


class TestGemini:
    def test_parse_analysis(self):
        result = parse_analysis(json.dumps(_GEMINI_ANSWER))
        assert result.sentiment.startswith("Bullish")
        assert result.buy_orders[0].take_profit == 99_000.0
        assert result.buy_orders[0].stop_loss == 93_000.0
        assert result.sell_orders[0].stop_loss is None

    @pytest.mark.parametrize("text", ["not json", "[]", '{"buyOrders": []}'])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            parse_analysis(text)

    def test_prompt_lists_levels(self, fake_genai):
        client = GeminiAnalysisClient(_make_config(gemini_api_key="k"))
        prompt = client.build_prompt(97_000.0, _make_vwap(weekly=95_000.0, annual=80_000.0))
        assert "97000.00" in prompt
        assert "Weekly VWAP: 95000.00" in prompt
        assert "Annual VWAP: 80000.00" in prompt
        assert "Monthly" not in prompt

    @pytest.mark.asyncio
    async def test_analyze(self, fake_genai):
        client = GeminiAnalysisClient(_make_config(gemini_api_key="secret"))
        result = await client.analyze(97_000.0, _make_vwap(weekly=95_000.0))

        sdk = fake_genai.last
        assert sdk.api_key == "secret"
        call = sdk.aio.models.calls[0]
        assert call["model"] == "gemini-2.5-flash"
        assert "Weekly VWAP: 95000.00" in call["contents"]
        assert call["config"].response_mime_type == "application/json"
        assert "technical analysis" in call["config"].system_instruction
        assert len(result.buy_orders) == 1
        assert result.sell_orders[0].type == "Sell Limit"

    @pytest.mark.asyncio
    async def test_analyze_strips_whitespace(self, fake_genai):
        fake_genai.reply = "\n  " + json.dumps(_GEMINI_ANSWER) + "\n"
        client = GeminiAnalysisClient(_make_config(gemini_api_key="secret"))
        result = await client.analyze(97_000.0, _make_vwap(weekly=95_000.0))
        assert result.buy_orders[0].price == 95_000.0

    @pytest.mark.asyncio
    async def test_analyze_without_candidates(self, fake_genai):
        fake_genai.reply = None
        client = GeminiAnalysisClient(_make_config(gemini_api_key="secret"))
        with pytest.raises(ValueError, match="no candidate text"):
            await client.analyze(97_000.0, _make_vwap(weekly=95_000.0))


class TestVwapLevelAnalysis:
    @pytest.mark.asyncio
    async def test_orders_around_price(self):
        vwap = _make_vwap(daily=99.0, weekly=95.0, monthly=90.0, annual=110.0)
        result = await VwapLevelAnalysis().analyze(100.0, vwap)

        assert [o.price for o in result.buy_orders] == [95.0, 90.0]
        assert all(o.type == "Buy Limit" for o in result.buy_orders)
        assert all(o.take_profit == 110.0 for o in result.buy_orders)
        assert result.buy_orders[0].stop_loss == pytest.approx(95.0 * 0.98)

        assert [o.price for o in result.sell_orders] == [110.0]
        assert result.sell_orders[0].take_profit == 95.0
        assert result.sentiment.startswith("Positive bias")

    @pytest.mark.asyncio
    async def test_price_above_everything(self):
        result = await VwapLevelAnalysis().analyze(200.0, _make_vwap(weekly=95.0, monthly=90.0))
        assert result.sell_orders == []
        assert result.buy_orders[0].take_profit == 200.0
        assert result.sentiment.startswith("Bullish")

    @pytest.mark.asyncio
    async def test_no_levels(self):
        result = await VwapLevelAnalysis().analyze(100.0, _make_vwap())
        assert result.buy_orders == [] and result.sell_orders == []
        assert result.sentiment.startswith("Neutral")

    def test_provider_selection(self, fake_genai):
        assert isinstance(build_analysis_provider(_make_config()), VwapLevelAnalysis)
        gemini = build_analysis_provider(_make_config(analysis_provider="gemini", gemini_api_key="k"))
        assert isinstance(gemini, GeminiAnalysisClient)
        assert isinstance(gemini, AnalysisProvider)
