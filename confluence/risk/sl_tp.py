"""Stop-loss and take-profit levels — pure math, no I/O.

Fixed-percentage levels around the entry price:

    buy bias:   SL = entry × 0.95   TP = entry × 1.15
    sell bias:  SL = entry × 1.05   TP = entry × 0.85
"""

from dataclasses import dataclass

STOP_LOSS_PCT = 0.05
TAKE_PROFIT_PCT = 0.15


@dataclass(frozen=True)
class RiskLevels:
    """Computed stop-loss and take-profit for a trade."""

    stop_loss: float
    take_profit: float


def calculate_risk_levels(entry_price: float, bias: str) -> RiskLevels:
    """Return fixed-percentage SL / TP for *entry_price*.

    Raises:
        ValueError: If *bias* is not ``"buy"`` or ``"sell"``.
    """
    if bias == "buy":
        return RiskLevels(
            stop_loss=entry_price * (1 - STOP_LOSS_PCT),
            take_profit=entry_price * (1 + TAKE_PROFIT_PCT),
        )
    if bias == "sell":
        return RiskLevels(
            stop_loss=entry_price * (1 + STOP_LOSS_PCT),
            take_profit=entry_price * (1 - TAKE_PROFIT_PCT),
        )
    raise ValueError(f"bias must be 'buy' or 'sell', got '{bias}'")
