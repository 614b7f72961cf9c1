"""Strategy data models — typed representations for indicator and signal outputs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional


@dataclass(frozen=True)
class CandleData:
    """A single OHLCV candlestick bar (``time`` is a UTC-aware datetime)."""

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class HeikinAshiCandle:
    """A smoothed Heikin-Ashi bar, index-aligned with its source candle."""

    time: datetime
    open: float
    high: float
    low: float
    close: float
    is_green: bool


@dataclass(frozen=True)
class VwapPeriodValue:
    """VWAP for a window and for the equal-length window before it.

    ``0.0`` means no volume traded in the window (undefined).
    """

    current: float
    previous: float


@dataclass(frozen=True)
class VwapData:
    daily: VwapPeriodValue
    weekly: VwapPeriodValue
    monthly: VwapPeriodValue
    annual: VwapPeriodValue


@dataclass(frozen=True)
class PivotPoints:
    """Classic floor-trader pivot levels."""

    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float


@dataclass(frozen=True)
class FibonacciLevels:
    """Swing range plus retracement / extension levels keyed by label (``"61%"``)."""

    swing_high: float
    swing_low: float
    is_uptrend: bool
    levels: dict[str, float]


@dataclass(frozen=True)
class IndicatorValues:
    """Point-in-time indicator snapshot consumed by the signal engine.

    ``ema50`` / ``ema200`` are ``0.0`` when there is not enough history.
    """

    rsi: float
    ha_candle: Optional[HeikinAshiCandle]
    pivots: Optional[PivotPoints]
    vwap: Optional[VwapData]
    fibonacci: Optional[FibonacciLevels]
    ema50: float
    ema200: float


@dataclass(frozen=True)
class IndicatorSeries:
    """Full per-candle series for chart consumers."""

    ema50: list[Optional[float]]
    ema200: list[Optional[float]]
    heikin_ashi: list[HeikinAshiCandle] = field(default_factory=list)


# ── Signals ──────────────────────────────────────────────────────────────

Signal = Literal["COMPRA", "VENDA", "ROMPIMENTO", "RETRAÇÃO", "NEUTRO", "MANTER"]
Bias = Literal["buy", "sell"]

BUY: Signal = "COMPRA"
SELL: Signal = "VENDA"
BREAKOUT: Signal = "ROMPIMENTO"
PULLBACK: Signal = "RETRAÇÃO"
NEUTRAL: Signal = "NEUTRO"
HOLD: Signal = "MANTER"

ACTIONABLE_SIGNALS: frozenset[str] = frozenset({BUY, SELL})


@dataclass(frozen=True)
class SignalDetails:
    """Signal classification with entry, risk levels and ordered reasons.

    ``bias`` is the direction the stop-loss / take-profit were derived from.
    For non-actionable signals those levels are advisory only.
    """

    signal: Signal
    entry: float
    stop_loss: float
    take_profit: float
    reasons: list[str]
    bias: Bias

    @property
    def actionable(self) -> bool:
        return self.signal in ACTIONABLE_SIGNALS


# ── Series contract ──────────────────────────────────────────────────────


def validate_series(candles: list[CandleData]) -> None:
    """Fail fast on a series that breaks the candle-series contract.

    Raises ``ValueError`` if the series is empty, not strictly
    time-ascending, or contains a candle with inconsistent OHLC values
    or negative volume.
    """
    if not candles:
        raise ValueError("Candle series must contain at least one candle")

    prev_time: Optional[datetime] = None
    for i, c in enumerate(candles):
        if prev_time is not None and c.time <= prev_time:
            raise ValueError(
                f"Candle series must be strictly time-ascending "
                f"(index {i}: {c.time.isoformat()} <= {prev_time.isoformat()})"
            )
        if not (c.low <= min(c.open, c.close) and max(c.open, c.close) <= c.high):
            raise ValueError(f"Candle at index {i} has inconsistent OHLC values")
        if c.volume < 0:
            raise ValueError(f"Candle at index {i} has negative volume")
        prev_time = c.time
