"""Qualitative analysis providers — advisory sentiment and suggested orders.

Two implementations of ``AnalysisProvider``:

- ``GeminiAnalysisClient``: asks Gemini (``google-genai`` async client) for a
  JSON answer.
- ``VwapLevelAnalysis``: deterministic offline read of the VWAP levels.

Neither feeds the signal engine; results are merged into presentation only.
"""

import json
import logging
from typing import Protocol, runtime_checkable

from google import genai
from google.genai import types

from confluence.config import Config
from confluence.providers.models import AnalysisResult, SuggestedOrder
from confluence.strategy.models import VwapData

logger = logging.getLogger("confluence")


@runtime_checkable
class AnalysisProvider(Protocol):
    """Interface that all analysis providers must satisfy."""

    async def analyze(self, price: float, vwap: VwapData) -> AnalysisResult:
        """Return a sentiment read and suggested pending orders."""
        ...


def _vwap_levels(vwap: VwapData) -> list[tuple[str, float]]:
    levels = [
        ("weekly", vwap.weekly.current),
        ("monthly", vwap.monthly.current),
        ("annual", vwap.annual.current),
    ]
    return [(name, value) for name, value in levels if value > 0]


# ── Gemini ───────────────────────────────────────────────────────────────

_SYSTEM_INSTRUCTION = (
    "You are a cryptocurrency analyst focused on technical analysis. Analyse "
    "the VWAP (volume-weighted average price) levels for BTC/USD and suggest "
    "pending orders based on them. Be concise and direct."
)

_ORDER_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "type": {"type": "STRING", "description": 'Order type (e.g. "Buy Limit", "Sell Stop").'},
        "price": {"type": "NUMBER", "description": "Suggested entry price."},
        "takeProfit": {"type": "NUMBER", "description": "Take-profit at the next key VWAP or pivot level."},
        "stopLoss": {"type": "NUMBER", "description": "Protective stop-loss price."},
        "reason": {"type": "STRING", "description": "Short technical justification."},
    },
    "required": ["type", "price", "takeProfit", "reason"],
}

_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "sentiment": {
            "type": "STRING",
            "description": 'Market sentiment ("Bullish", "Bearish", "Neutral") with a short explanation.',
        },
        "buyOrders": {"type": "ARRAY", "description": "Up to two pending buy orders.", "items": _ORDER_SCHEMA},
        "sellOrders": {"type": "ARRAY", "description": "Up to two pending sell orders.", "items": _ORDER_SCHEMA},
    },
    "required": ["sentiment", "buyOrders", "sellOrders"],
}


def _parse_order(raw: dict) -> SuggestedOrder:
    stop = raw.get("stopLoss")
    return SuggestedOrder(
        type=str(raw["type"]),
        price=float(raw["price"]),
        take_profit=float(raw["takeProfit"]),
        stop_loss=float(stop) if stop is not None else None,
        reason=str(raw.get("reason", "")),
    )


def parse_analysis(text: str) -> AnalysisResult:
    """Parse the model's JSON text into an ``AnalysisResult``.

    Raises ``ValueError`` if the text is not the expected JSON shape.
    """
    try:
        data = json.loads(text)
        return AnalysisResult(
            sentiment=str(data["sentiment"]),
            buy_orders=[_parse_order(o) for o in data.get("buyOrders", [])],
            sell_orders=[_parse_order(o) for o in data.get("sellOrders", [])],
        )
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Analysis response was not in the expected JSON format: {exc}") from exc


class GeminiAnalysisClient:
    """Async Gemini client asking for a schema-constrained JSON answer."""

    def __init__(self, config: Config) -> None:
        self._model = config.gemini_model
        self._client = genai.Client(api_key=config.gemini_api_key)

    def build_prompt(self, price: float, vwap: VwapData) -> str:
        lines = [f"The current BTC/USD price is {price:.2f}.", "VWAP levels:"]
        for name, value in _vwap_levels(vwap):
            lines.append(f"- {name.capitalize()} VWAP: {value:.2f}")
        lines.append(
            "Using these levels as dynamic support and resistance, give a short "
            "sentiment read and suggest up to two pending buy orders and up to "
            "two pending sell orders. For each order give the type (e.g. Buy "
            "Limit, Sell Stop), the entry price, a realistic take profit at the "
            "next key price level, a stop loss and a short technical reason."
        )
        return "\n".join(lines)

    async def analyze(self, price: float, vwap: VwapData) -> AnalysisResult:
        logger.debug("Requesting analysis from %s", self._model)
        resp = await self._client.aio.models.generate_content(
            model=self._model,
            contents=self.build_prompt(price, vwap),
            config=types.GenerateContentConfig(
                system_instruction=_SYSTEM_INSTRUCTION,
                response_mime_type="application/json",
                response_schema=_ANALYSIS_SCHEMA,
            ),
        )
        text = resp.text
        if not text:
            raise ValueError("Gemini response contained no candidate text")
        return parse_analysis(text.strip())


# ── Offline VWAP read ────────────────────────────────────────────────────


class VwapLevelAnalysis:
    """Deterministic analysis from VWAP levels, used when no AI provider is configured.

    Buy limits sit on the nearest VWAP levels below price and target the
    nearest level above (or the current price); sell limits mirror that.
    """

    def __init__(self, max_orders: int = 2, stop_pct: float = 0.02) -> None:
        self._max_orders = max_orders
        self._stop_pct = stop_pct

    async def analyze(self, price: float, vwap: VwapData) -> AnalysisResult:
        levels = _vwap_levels(vwap)
        below = sorted((lv for lv in levels if lv[1] < price), key=lambda lv: -lv[1])
        above = sorted((lv for lv in levels if lv[1] > price), key=lambda lv: lv[1])

        buy_target = above[0][1] if above else price
        sell_target = below[0][1] if below else price

        buy_orders = [
            SuggestedOrder(
                type="Buy Limit",
                price=value,
                take_profit=buy_target,
                stop_loss=value * (1 - self._stop_pct),
                reason=f"Retest of the {name} VWAP as support",
            )
            for name, value in below[: self._max_orders]
        ]
        sell_orders = [
            SuggestedOrder(
                type="Sell Limit",
                price=value,
                take_profit=sell_target,
                stop_loss=value * (1 + self._stop_pct),
                reason=f"Retest of the {name} VWAP as resistance",
            )
            for name, value in above[: self._max_orders]
        ]

        return AnalysisResult(
            sentiment=self._sentiment(len(below), len(above)),
            buy_orders=buy_orders,
            sell_orders=sell_orders,
        )

    @staticmethod
    def _sentiment(n_below: int, n_above: int) -> str:
        total = n_below + n_above
        if total == 0:
            return "Neutral: no VWAP levels available yet."
        if n_above == 0:
            return "Bullish: price trades above every VWAP level."
        if n_below == 0:
            return "Bearish: price trades below every VWAP level."
        if n_below > n_above:
            return "Positive bias: price holds above most VWAP levels."
        if n_above > n_below:
            return "Negative bias: price is capped by most VWAP levels."
        return "Neutral: price is caught between VWAP levels."


def build_analysis_provider(config: Config) -> AnalysisProvider:
    """Pick the analysis provider named by ``config.analysis_provider``."""
    if config.analysis_provider == "gemini":
        return GeminiAnalysisClient(config)
    return VwapLevelAnalysis()
