"""Signal evaluation — pure functions, no I/O.

Given the current price, the candle series and an indicator snapshot,
walks an ordered rule list and returns the first rule's outcome:

    1. breakout          price crosses R1 / S1 since the previous close
    2. trend_momentum    EMA-200 trend agrees with an RSI extreme + HA candle
    3. fibonacci         RSI extreme + HA candle at the 200% / 100% level
    4. rsi_confirmation  RSI extreme + HA candle (no EMA-200 available)
    5. vwap_pullback     HA candle against the weekly-VWAP trend, daily VWAP holds
    6. fallback          NEUTRO inside RSI 45-55, otherwise MANTER

Confluence annotations for every indicator relationship that holds are
appended after the winning rule's reasons.  Duplicates are dropped,
first occurrence wins.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from confluence.risk.sl_tp import calculate_risk_levels
from confluence.strategy.models import (
    BREAKOUT,
    BUY,
    HOLD,
    NEUTRAL,
    PULLBACK,
    SELL,
    Bias,
    CandleData,
    IndicatorValues,
    Signal,
    SignalDetails,
)

DEFAULT_MIN_CANDLES = 200

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
RSI_NEAR_OVERSOLD = 35.0
RSI_NEAR_OVERBOUGHT = 65.0
RSI_NEUTRAL_LOW = 45.0
RSI_NEUTRAL_HIGH = 55.0

# Max relative distance for price to count as "at" a Fibonacci level.
FIB_PROXIMITY = 0.005


@dataclass(frozen=True)
class SignalContext:
    """Everything a rule may look at."""

    price: float
    prev_close: float
    indicators: IndicatorValues

    @property
    def rsi(self) -> float:
        return self.indicators.rsi

    @property
    def bullish_candle(self) -> bool:
        ha = self.indicators.ha_candle
        return ha is not None and ha.is_green

    @property
    def bearish_candle(self) -> bool:
        ha = self.indicators.ha_candle
        return ha is not None and not ha.is_green

    @property
    def has_trend_filter(self) -> bool:
        return self.indicators.ema200 > 0


@dataclass(frozen=True)
class RuleOutcome:
    """The classification a single rule produced."""

    signal: Signal
    bias: Bias
    reasons: tuple[str, ...]


Rule = Callable[[SignalContext], Optional[RuleOutcome]]


# ── Reason text ──────────────────────────────────────────────────────────

_OVERSOLD = "RSI oversold (≤ 30)"
_OVERBOUGHT = "RSI overbought (≥ 70)"
_GREEN_HA = "Green Heikin-Ashi candle (confirmation)"
_RED_HA = "Red Heikin-Ashi candle (confirmation)"
_ABOVE_EMA200 = "Price above EMA 200 (long-term uptrend)"
_BELOW_EMA200 = "Price below EMA 200 (long-term downtrend)"
_ABOVE_WEEKLY = "Price above weekly VWAP (uptrend)"
_BELOW_WEEKLY = "Price below weekly VWAP (downtrend)"
_ABOVE_DAILY = "Price above daily VWAP"
_BELOW_DAILY = "Price below daily VWAP"

_VWAP_ANNOTATIONS = {
    "daily": (_ABOVE_DAILY, _BELOW_DAILY),
    "weekly": (_ABOVE_WEEKLY, _BELOW_WEEKLY),
    "monthly": ("Price above monthly VWAP", "Price below monthly VWAP"),
    "annual": ("Price above annual VWAP (macro bullish)", "Price below annual VWAP (macro bearish)"),
}


# ── Rules ────────────────────────────────────────────────────────────────


def _is_near(price: float, level: float) -> bool:
    if level <= 0:
        return False
    return abs(price - level) / level <= FIB_PROXIMITY


def breakout_rule(ctx: SignalContext) -> Optional[RuleOutcome]:
    """Price crossed R1 upward or S1 downward since the previous close."""
    pivots = ctx.indicators.pivots
    if pivots is None:
        return None
    if ctx.prev_close < pivots.r1 <= ctx.price:
        return RuleOutcome(BREAKOUT, "buy", (
            f"Bullish breakout above R1 ({pivots.r1:.2f})",
            f"Previous close {ctx.prev_close:.2f} was below resistance",
        ))
    if ctx.prev_close > pivots.s1 >= ctx.price:
        return RuleOutcome(BREAKOUT, "sell", (
            f"Bearish breakdown below S1 ({pivots.s1:.2f})",
            f"Previous close {ctx.prev_close:.2f} was above support",
        ))
    return None


def trend_momentum_rule(ctx: SignalContext) -> Optional[RuleOutcome]:
    """RSI extreme with confirmation, in the direction of the EMA-200 trend."""
    if not ctx.has_trend_filter:
        return None
    ema200 = ctx.indicators.ema200
    if ctx.price > ema200 and ctx.rsi <= RSI_OVERSOLD and ctx.bullish_candle:
        return RuleOutcome(BUY, "buy", (_ABOVE_EMA200, _OVERSOLD, _GREEN_HA))
    if ctx.price < ema200 and ctx.rsi >= RSI_OVERBOUGHT and ctx.bearish_candle:
        return RuleOutcome(SELL, "sell", (_BELOW_EMA200, _OVERBOUGHT, _RED_HA))
    return None


def fibonacci_rule(ctx: SignalContext) -> Optional[RuleOutcome]:
    """Exhaustion at the 200% extension or a retest of the 100% level."""
    fib = ctx.indicators.fibonacci
    if fib is None:
        return None
    extension = fib.levels.get("200%")
    full = fib.levels.get("100%")
    oversold_green = ctx.rsi <= RSI_OVERSOLD and ctx.bullish_candle
    overbought_red = ctx.rsi >= RSI_OVERBOUGHT and ctx.bearish_candle

    if fib.is_uptrend:
        if extension is not None and _is_near(ctx.price, extension) and overbought_red:
            return RuleOutcome(SELL, "sell", (
                f"Price at Fibonacci 200% extension ({extension:.2f}), uptrend exhaustion",
                _OVERBOUGHT,
                _RED_HA,
            ))
        if full is not None and _is_near(ctx.price, full) and oversold_green:
            return RuleOutcome(BUY, "buy", (
                f"Price retesting Fibonacci 100% level at the swing low ({full:.2f}), bounce expected",
                _OVERSOLD,
                _GREEN_HA,
            ))
    else:
        if extension is not None and _is_near(ctx.price, extension) and oversold_green:
            return RuleOutcome(BUY, "buy", (
                f"Price at Fibonacci 200% extension ({extension:.2f}), downtrend exhaustion",
                _OVERSOLD,
                _GREEN_HA,
            ))
        if full is not None and _is_near(ctx.price, full) and overbought_red:
            return RuleOutcome(SELL, "sell", (
                f"Price retesting Fibonacci 100% level at the swing high ({full:.2f}), rejection expected",
                _OVERBOUGHT,
                _RED_HA,
            ))
    return None


def rsi_confirmation_rule(ctx: SignalContext) -> Optional[RuleOutcome]:
    """Plain RSI extreme + Heikin-Ashi confirmation when no trend filter exists."""
    if ctx.has_trend_filter:
        return None
    if ctx.rsi <= RSI_OVERSOLD and ctx.bullish_candle:
        return RuleOutcome(BUY, "buy", (_OVERSOLD, _GREEN_HA))
    if ctx.rsi >= RSI_OVERBOUGHT and ctx.bearish_candle:
        return RuleOutcome(SELL, "sell", (_OVERBOUGHT, _RED_HA))
    return None


def vwap_pullback_rule(ctx: SignalContext) -> Optional[RuleOutcome]:
    """Counter-trend candle while price still respects the daily VWAP."""
    vwap = ctx.indicators.vwap
    if vwap is None:
        return None
    weekly = vwap.weekly.current
    daily = vwap.daily.current
    if weekly <= 0 or daily <= 0:
        return None
    if ctx.price > weekly and ctx.bearish_candle and ctx.price > daily:
        return RuleOutcome(PULLBACK, "buy", (
            _ABOVE_WEEKLY,
            "Red Heikin-Ashi candle against the uptrend (pullback)",
            "Price holding above daily VWAP",
        ))
    if ctx.price < weekly and ctx.bullish_candle and ctx.price < daily:
        return RuleOutcome(PULLBACK, "sell", (
            _BELOW_WEEKLY,
            "Green Heikin-Ashi candle against the downtrend (pullback)",
            "Price holding below daily VWAP",
        ))
    return None


def fallback_rule(ctx: SignalContext) -> RuleOutcome:
    """NEUTRO inside the RSI neutral band, MANTER otherwise."""
    bias = _trend_bias(ctx)
    if RSI_NEUTRAL_LOW <= ctx.rsi <= RSI_NEUTRAL_HIGH:
        return RuleOutcome(NEUTRAL, bias, ("RSI in neutral zone (45-55), no trend",))
    return RuleOutcome(HOLD, bias, ())


SIGNAL_RULES: tuple[tuple[str, Rule], ...] = (
    ("breakout", breakout_rule),
    ("trend_momentum", trend_momentum_rule),
    ("fibonacci", fibonacci_rule),
    ("rsi_confirmation", rsi_confirmation_rule),
    ("vwap_pullback", vwap_pullback_rule),
    ("fallback", fallback_rule),
)


def _trend_bias(ctx: SignalContext) -> Bias:
    """Long-term bias for non-directional signals.

    EMA-200 first, then the weekly VWAP; ``"sell"`` when neither exists.
    """
    if ctx.has_trend_filter:
        return "buy" if ctx.price >= ctx.indicators.ema200 else "sell"
    vwap = ctx.indicators.vwap
    if vwap is not None and vwap.weekly.current > 0:
        return "buy" if ctx.price >= vwap.weekly.current else "sell"
    return "sell"


# ── Confluence ───────────────────────────────────────────────────────────


def confluence_reasons(ctx: SignalContext) -> list[str]:
    """Non-exclusive annotations for every indicator relationship that holds."""
    reasons: list[str] = []
    ind = ctx.indicators
    price = ctx.price

    if RSI_OVERSOLD < ind.rsi <= RSI_NEAR_OVERSOLD:
        reasons.append("RSI near oversold")
    if RSI_NEAR_OVERBOUGHT <= ind.rsi < RSI_OVERBOUGHT:
        reasons.append("RSI near overbought")

    if ind.vwap is not None:
        for name, (above, below) in _VWAP_ANNOTATIONS.items():
            level = getattr(ind.vwap, name).current
            if level <= 0:
                continue
            if price > level:
                reasons.append(above)
            elif price < level:
                reasons.append(below)

    if ind.pivots is not None:
        if price > ind.pivots.pivot:
            reasons.append("Price above daily pivot point")
        elif price < ind.pivots.pivot:
            reasons.append("Price below daily pivot point")

    if ind.ema50 > 0:
        if price > ind.ema50:
            reasons.append("Price above EMA 50")
        elif price < ind.ema50:
            reasons.append("Price below EMA 50")
    if ind.ema200 > 0:
        if price > ind.ema200:
            reasons.append(_ABOVE_EMA200)
        elif price < ind.ema200:
            reasons.append(_BELOW_EMA200)

    return reasons


def _dedupe(reasons: list[str]) -> list[str]:
    return list(dict.fromkeys(reasons))


# ── Entry point ──────────────────────────────────────────────────────────


def classify(ctx: SignalContext) -> tuple[str, RuleOutcome]:
    """Run the rule list in order and return ``(rule_name, outcome)`` of the first match."""
    for name, rule in SIGNAL_RULES:
        outcome = rule(ctx)
        if outcome is not None:
            return name, outcome
    # fallback_rule always matches
    raise AssertionError("signal rule list has no terminal rule")


def evaluate_signal(
    price: float,
    candles: list[CandleData],
    indicators: IndicatorValues,
    min_candles: int = DEFAULT_MIN_CANDLES,
) -> Optional[SignalDetails]:
    """Classify the current market state.

    Args:
        price: Current (live) price, used as the entry.
        candles: Candle series, oldest-first.  The second-to-last close
            is the previous observation for breakout detection.
        indicators: Snapshot computed from the same *candles*.
        min_candles: Minimum series length; below it no signal is produced.

    Returns:
        ``SignalDetails``, or ``None`` if the series is too short.
    """
    if len(candles) < max(min_candles, 2):
        return None

    ctx = SignalContext(
        price=price,
        prev_close=candles[-2].close,
        indicators=indicators,
    )
    _, outcome = classify(ctx)
    levels = calculate_risk_levels(price, outcome.bias)

    return SignalDetails(
        signal=outcome.signal,
        entry=price,
        stop_loss=levels.stop_loss,
        take_profit=levels.take_profit,
        reasons=_dedupe(list(outcome.reasons) + confluence_reasons(ctx)),
        bias=outcome.bias,
    )
