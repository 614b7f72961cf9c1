"""Position sizing — pure math, no I/O.

Two sizing modes:

Leverage-based (primary)::

    position_value = bankroll × leverage
    lot_size       = position_value / entry
    risk_amount    = lot_size × |entry − stop_loss|
    profit_amount  = lot_size × |target − entry|

Risk-profile based (fixed fraction of bankroll at risk)::

    risk_amount        = bankroll × profile_pct
    lot_size           = risk_amount / |entry − stop_loss|
    position_value     = lot_size × entry
    suggested_leverage = max(1, ceil(position_value / bankroll))

Degenerate inputs (non-positive, NaN or infinite) yield ``None`` rather than
a division by zero or a non-finite plan.
"""

import math
from dataclasses import dataclass
from typing import Optional

from confluence.strategy.models import SignalDetails

RISK_PROFILES: dict[str, float] = {
    "conservative": 0.01,
    "aggressive": 0.03,
}


@dataclass(frozen=True)
class PositionPlan:
    """Leverage-based position projection (amounts in base currency)."""

    lot_size: float
    risk_amount: float
    profit_amount: float
    position_value: float


@dataclass(frozen=True)
class RiskProfilePlan:
    """Risk-profile position projection (amounts in base currency)."""

    lot_size: float
    risk_amount: float
    profit_amount: float
    position_value: float
    suggested_leverage: int


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def _positive(*values: float) -> bool:
    return _finite(*values) and all(v > 0 for v in values)


def calculate_position(
    bankroll: float,
    leverage: float,
    signal: SignalDetails,
    target_price: Optional[float] = None,
    quote_rate: Optional[float] = None,
) -> Optional[PositionPlan]:
    """Size a leveraged position from *signal*'s entry and stop-loss.

    Args:
        bankroll: Account capital in base currency (USD).
        leverage: Leverage multiplier (e.g. 50 for 50×).
        signal: Signal providing entry, stop-loss and default target.
        target_price: Optional custom target; defaults to the signal's
            take-profit.
        quote_rate: When given, *target_price* is expressed in the quote
            currency (e.g. BRL) and is divided by this rate first.

    Returns:
        ``PositionPlan``, or ``None`` if bankroll, leverage, entry or rate
        is non-positive or not finite, a price is not finite, or the
        stop-loss sits on the entry.
    """
    entry = signal.entry
    if not _positive(bankroll, leverage, entry):
        return None
    if not _finite(signal.stop_loss, signal.take_profit):
        return None

    price_risk = abs(entry - signal.stop_loss)
    if price_risk == 0:
        return None

    if target_price is None:
        target = signal.take_profit
    elif not _finite(target_price):
        return None
    elif quote_rate is not None:
        if not _positive(quote_rate):
            return None
        target = target_price / quote_rate
    else:
        target = target_price

    position_value = bankroll * leverage
    lot_size = position_value / entry

    plan = PositionPlan(
        lot_size=lot_size,
        risk_amount=lot_size * price_risk,
        profit_amount=lot_size * abs(target - entry),
        position_value=position_value,
    )
    # finite inputs can still overflow
    if not _finite(plan.lot_size, plan.risk_amount, plan.profit_amount, plan.position_value):
        return None
    return plan


def calculate_risk_profile_position(
    bankroll: float,
    profile: str,
    signal: SignalDetails,
) -> Optional[RiskProfilePlan]:
    """Size a position so that hitting the stop-loss costs a fixed bankroll share.

    Raises:
        ValueError: If *profile* is not a key of ``RISK_PROFILES``.
    """
    if profile not in RISK_PROFILES:
        raise ValueError(
            f"Unknown risk profile '{profile}'. "
            f"Available: {', '.join(RISK_PROFILES.keys())}"
        )
    if not _positive(bankroll, signal.entry):
        return None
    if not _finite(signal.stop_loss, signal.take_profit):
        return None

    price_risk = abs(signal.entry - signal.stop_loss)
    if price_risk == 0:
        return None

    risk_amount = bankroll * RISK_PROFILES[profile]
    lot_size = risk_amount / price_risk
    position_value = lot_size * signal.entry
    if not _finite(lot_size, position_value):
        return None

    return RiskProfilePlan(
        lot_size=lot_size,
        risk_amount=risk_amount,
        profit_amount=lot_size * abs(signal.take_profit - signal.entry),
        position_value=position_value,
        suggested_leverage=max(1, math.ceil(position_value / bankroll)),
    )


def to_quote(amount: float, rate: float) -> Optional[float]:
    """Convert a base-currency *amount* to the quote currency, or ``None`` without a rate."""
    if not _positive(rate):
        return None
    converted = amount * rate
    return converted if _finite(converted) else None
