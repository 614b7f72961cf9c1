"""Price levels — classic pivot points and Fibonacci swing levels. Pure functions."""

from typing import Optional

from confluence.strategy.models import CandleData, FibonacciLevels, PivotPoints

FIBONACCI_RATIOS: tuple[float, ...] = (0.236, 0.382, 0.5, 0.618, 0.786, 1.0, 1.618, 2.0)


# ── Pivot points ─────────────────────────────────────────────────────────


def calculate_pivot_points(reference: CandleData) -> PivotPoints:
    """Floor-trader pivots from a single reference candle.

        P  = (H + L + C) / 3
        R1 = 2P - L          S1 = 2P - H
        R2 = P + (H - L)     S2 = P - (H - L)
        R3 = H + 2(P - L)    S3 = L - 2(H - P)
    """
    h, l, c = reference.high, reference.low, reference.close
    p = (h + l + c) / 3
    return PivotPoints(
        pivot=p,
        r1=2 * p - l,
        r2=p + (h - l),
        r3=h + 2 * (p - l),
        s1=2 * p - h,
        s2=p - (h - l),
        s3=l - 2 * (h - p),
    )


def previous_day_candle(candles: list[CandleData]) -> Optional[CandleData]:
    """Aggregate the last UTC calendar day before the latest candle's day.

    High is the max high, low the min low, open the first open and close
    the last close of that day.  Returns ``None`` when the series holds no
    earlier day.
    """
    if not candles:
        return None

    last_day = candles[-1].time.date()
    day_candles: list[CandleData] = []
    target_day = None

    for c in reversed(candles):
        day = c.time.date()
        if day >= last_day:
            continue
        if target_day is None:
            target_day = day
        if day != target_day:
            break
        day_candles.append(c)

    if not day_candles:
        return None

    day_candles.reverse()
    return CandleData(
        time=day_candles[0].time,
        open=day_candles[0].open,
        high=max(c.high for c in day_candles),
        low=min(c.low for c in day_candles),
        close=day_candles[-1].close,
        volume=sum(c.volume for c in day_candles),
    )


# ── Fibonacci ────────────────────────────────────────────────────────────


def fibonacci_label(ratio: float) -> str:
    """Label a ratio by its whole percentage, e.g. ``0.618 -> "61%"``."""
    return f"{int(ratio * 100)}%"


def calculate_fibonacci(
    candles: list[CandleData],
    lookback_days: int = 90,
    candles_per_day: int = 24,
) -> Optional[FibonacciLevels]:
    """Fibonacci retracement / extension levels over a trailing swing window.

    The window spans ``lookback_days × candles_per_day`` candles, so
    *candles_per_day* must match the series granularity (24 for hourly,
    1 for daily).  Returns ``None`` when the series is shorter than the
    window.

    Uptrend (swing high after swing low):
        ratio <= 1 → high - range × ratio
        ratio > 1  → high + range × (ratio - 1)
    Downtrend:
        ratio <= 1 → low + range × ratio
        ratio > 1  → low - range × (ratio - 1)
    """
    if lookback_days <= 0 or candles_per_day <= 0:
        raise ValueError(
            f"lookback_days and candles_per_day must be positive, "
            f"got {lookback_days} and {candles_per_day}"
        )

    window_size = lookback_days * candles_per_day
    if len(candles) < window_size:
        return None

    window = candles[-window_size:]

    high_idx = 0
    low_idx = 0
    for i, c in enumerate(window):
        if c.high > window[high_idx].high:
            high_idx = i
        if c.low < window[low_idx].low:
            low_idx = i

    swing_high = window[high_idx].high
    swing_low = window[low_idx].low
    is_uptrend = high_idx > low_idx
    price_range = swing_high - swing_low

    levels: dict[str, float] = {}
    for ratio in FIBONACCI_RATIOS:
        if is_uptrend:
            if ratio <= 1:
                level = swing_high - price_range * ratio
            else:
                level = swing_high + price_range * (ratio - 1)
        else:
            if ratio <= 1:
                level = swing_low + price_range * ratio
            else:
                level = swing_low - price_range * (ratio - 1)
        levels[fibonacci_label(ratio)] = level

    return FibonacciLevels(
        swing_high=swing_high,
        swing_low=swing_low,
        is_uptrend=is_uptrend,
        levels=levels,
    )
