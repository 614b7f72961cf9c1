"""Volume-weighted average price over calendar windows — pure functions."""

import calendar
from datetime import datetime, timedelta

from confluence.strategy.models import CandleData, VwapData, VwapPeriodValue


def calculate_vwap(candles: list[CandleData], start: datetime, end: datetime) -> float:
    """Volume-weighted typical price over the half-open window ``[start, end)``.

    Typical price is ``(high + low + close) / 3``.  Returns ``0.0`` when no
    candle falls inside the window or the window traded no volume.
    """
    cumulative_pv = 0.0
    cumulative_volume = 0.0

    for c in candles:
        if start <= c.time < end:
            typical = (c.high + c.low + c.close) / 3
            cumulative_pv += typical * c.volume
            cumulative_volume += c.volume

    if cumulative_volume <= 0:
        return 0.0
    return cumulative_pv / cumulative_volume


def _shift_months(moment: datetime, months: int) -> datetime:
    """Move *moment* back by *months* calendar months, clamping the day."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def vwap_anchor(candles: list[CandleData]) -> datetime:
    """Start of the UTC day after the last candle — the exclusive end of every window."""
    last = candles[-1].time
    day_start = last.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start + timedelta(days=1)


def vwap_windows(anchor: datetime) -> dict[str, tuple[datetime, datetime, datetime]]:
    """Return ``{period: (previous_start, current_start, end)}`` for each granularity.

    The current window is ``[current_start, end)`` and the comparison
    window is ``[previous_start, current_start)``.
    """
    day_ago = anchor - timedelta(days=1)
    week_ago = anchor - timedelta(days=7)
    month_ago = _shift_months(anchor, 1)
    year_ago = _shift_months(anchor, 12)
    return {
        "daily": (day_ago - timedelta(days=1), day_ago, anchor),
        "weekly": (week_ago - timedelta(days=7), week_ago, anchor),
        "monthly": (_shift_months(month_ago, 1), month_ago, anchor),
        "annual": (_shift_months(year_ago, 12), year_ago, anchor),
    }


def calculate_vwap_data(candles: list[CandleData]) -> VwapData:
    """Compute daily / weekly / monthly / annual VWAP with their prior periods."""
    if not candles:
        raise ValueError("VWAP needs at least one candle")

    values: dict[str, VwapPeriodValue] = {}
    for name, (prev_start, start, end) in vwap_windows(vwap_anchor(candles)).items():
        values[name] = VwapPeriodValue(
            current=calculate_vwap(candles, start, end),
            previous=calculate_vwap(candles, prev_start, start),
        )
    return VwapData(**values)
