"""Technical indicators — RSI, EMA, Heikin-Ashi. Pure functions, no I/O."""

from typing import Optional

from confluence.strategy.models import CandleData, HeikinAshiCandle

# Returned when there is not enough history for RSI.
RSI_NEUTRAL = 50.0


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(candles: list[CandleData], period: int = 14) -> float:
    """Wilder RSI of the latest close.

    The first average gain / loss is the plain mean of the first *period*
    close-to-close changes; every later change is folded in with Wilder
    smoothing, ``avg = (avg × (period - 1) + change) / period``.  The
    result is ``100 - 100 / (1 + avg_gain / avg_loss)``, or 100 when no
    loss occurred.

    Fewer than ``period + 1`` candles yield ``RSI_NEUTRAL`` (50).
    """
    if len(candles) < period + 1:
        return RSI_NEUTRAL

    closes = [c.close for c in candles]
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]

    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── EMA ──────────────────────────────────────────────────────────────────


def calculate_ema_series(
    candles: list[CandleData], period: int
) -> list[Optional[float]]:
    """Per-candle EMA of closes with smoothing ``k = 2 / (period + 1)``.

    The value at index ``period - 1`` is seeded with the SMA of the first *period*
    closes.  Returns one entry per candle; entries before the seed
    point are ``None``.  With fewer than *period* candles every entry
    is ``None``.
    """
    ema: list[Optional[float]] = [None] * len(candles)
    if period <= 0 or len(candles) < period:
        return ema

    k = 2.0 / (period + 1)
    closes = [c.close for c in candles]

    prev = sum(closes[:period]) / period
    ema[period - 1] = prev

    for i in range(period, len(closes)):
        prev = closes[i] * k + prev * (1 - k)
        ema[i] = prev

    return ema


def calculate_ema(
    candles: list[CandleData],
    period: int,
    lookback: Optional[int] = None,
) -> float:
    """Return the latest EMA value, or ``0.0`` with insufficient data.

    When *lookback* is given only the trailing *lookback* candles are
    used (the SMA seed then sits at the start of that window).
    """
    window = candles[-lookback:] if lookback else candles
    series = calculate_ema_series(window, period)
    if not series or series[-1] is None:
        return 0.0
    return series[-1]


# ── Heikin-Ashi ──────────────────────────────────────────────────────────


def calculate_heikin_ashi(candles: list[CandleData]) -> list[HeikinAshiCandle]:
    """Transform a candle series into Heikin-Ashi candles.

    Each bar's open depends on the previous *derived* bar, so this is a
    left scan rather than a per-candle map:

        ha_close = (open + high + low + close) / 4
        ha_open  = (o + c) / 2                            (first bar)
                 = (prev_ha_open + prev_ha_close) / 2     (later bars)
        ha_high  = max(high, ha_open, ha_close)
        ha_low   = min(low, ha_open, ha_close)

    Raises ``ValueError`` on an empty series.
    """
    if not candles:
        raise ValueError("Heikin-Ashi needs at least one candle")

    result: list[HeikinAshiCandle] = []
    prev: Optional[HeikinAshiCandle] = None

    for c in candles:
        ha_close = (c.open + c.high + c.low + c.close) / 4
        if prev is None:
            ha_open = (c.open + c.close) / 2
        else:
            ha_open = (prev.open + prev.close) / 2

        prev = HeikinAshiCandle(
            time=c.time,
            open=ha_open,
            high=max(c.high, ha_open, ha_close),
            low=min(c.low, ha_open, ha_close),
            close=ha_close,
            is_green=ha_close >= ha_open,
        )
        result.append(prev)

    return result
