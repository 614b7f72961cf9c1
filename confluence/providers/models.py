"""Provider data models — advisory analysis returned by analysis providers."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SuggestedOrder:
    """A pending order suggested by the analysis provider."""

    type: str  # e.g. "Buy Limit", "Sell Stop"
    price: float
    take_profit: float
    reason: str
    stop_loss: Optional[float] = None


@dataclass(frozen=True)
class AnalysisResult:
    """Qualitative market read plus suggested pending orders."""

    sentiment: str
    buy_orders: list[SuggestedOrder] = field(default_factory=list)
    sell_orders: list[SuggestedOrder] = field(default_factory=list)
