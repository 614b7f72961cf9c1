"""Indicator bundle — runs every indicator over one candle series."""

from confluence.strategy.indicators import (
    calculate_ema,
    calculate_ema_series,
    calculate_heikin_ashi,
    calculate_rsi,
)
from confluence.strategy.levels import (
    calculate_fibonacci,
    calculate_pivot_points,
    previous_day_candle,
)
from confluence.strategy.models import (
    CandleData,
    IndicatorSeries,
    IndicatorValues,
    validate_series,
)
from confluence.strategy.vwap import calculate_vwap_data

RSI_PERIOD = 14
EMA_FAST = 50
EMA_SLOW = 200


def compute_indicators(
    candles: list[CandleData],
    candles_per_day: int = 24,
    fib_lookback_days: int = 90,
) -> IndicatorValues:
    """Compute the full indicator snapshot for the latest candle.

    Raises ``ValueError`` if *candles* violates the series contract.
    Indicators lacking history fall back to their sentinels.
    """
    validate_series(candles)

    heikin_ashi = calculate_heikin_ashi(candles)
    reference = previous_day_candle(candles)

    return IndicatorValues(
        rsi=calculate_rsi(candles, RSI_PERIOD),
        ha_candle=heikin_ashi[-1],
        pivots=calculate_pivot_points(reference) if reference else None,
        vwap=calculate_vwap_data(candles),
        fibonacci=calculate_fibonacci(candles, fib_lookback_days, candles_per_day),
        ema50=calculate_ema(candles, EMA_FAST),
        ema200=calculate_ema(candles, EMA_SLOW),
    )


def compute_series(candles: list[CandleData]) -> IndicatorSeries:
    """Per-candle EMA and Heikin-Ashi series for charting."""
    validate_series(candles)
    return IndicatorSeries(
        ema50=calculate_ema_series(candles, EMA_FAST),
        ema200=calculate_ema_series(candles, EMA_SLOW),
        heikin_ashi=calculate_heikin_ashi(candles),
    )
