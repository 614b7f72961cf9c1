"""CLI dashboard — prints the current signal and key levels to the console."""

from typing import Optional

from confluence.strategy.models import IndicatorValues, SignalDetails


def _fmt(value: Optional[float]) -> str:
    if value is None or value == 0:
        return "N/A"
    return f"${value:,.2f}"


def print_signal(
    price: float,
    signal: Optional[SignalDetails],
    indicators: Optional[IndicatorValues],
) -> str:
    """Format and print the signal card and key levels.

    Returns:
        The formatted string (also printed to stdout).
    """
    lines = [
        "──────────────── ConfluenceDesk BTC/USD ────────────────",
        f"  Price:       {_fmt(price)}",
    ]

    if signal is None:
        lines.append("  Signal:      waiting for enough history")
    else:
        lines += [
            f"  Signal:      {signal.signal}" + ("" if signal.actionable else " (advisory)"),
            f"  Entry:       {_fmt(signal.entry)}",
            f"  Stop Loss:   {_fmt(signal.stop_loss)}",
            f"  Take Profit: {_fmt(signal.take_profit)}",
            "  Reasons:",
        ]
        lines += [f"    • {reason}" for reason in signal.reasons]

    if indicators is not None:
        lines.append(f"  RSI(14):     {indicators.rsi:.2f}")
        lines.append(f"  EMA 50/200:  {_fmt(indicators.ema50)} / {_fmt(indicators.ema200)}")
        if indicators.pivots is not None:
            p = indicators.pivots
            lines.append(
                f"  Pivots:      S1 {_fmt(p.s1)}  P {_fmt(p.pivot)}  R1 {_fmt(p.r1)}"
            )
        if indicators.vwap is not None:
            v = indicators.vwap
            lines.append(
                f"  VWAP:        D {_fmt(v.daily.current)}  W {_fmt(v.weekly.current)}"
                f"  M {_fmt(v.monthly.current)}  Y {_fmt(v.annual.current)}"
            )

    lines.append("────────────────────────────────────────────────────────")
    output = "\n".join(lines)
    print(output)
    return output
