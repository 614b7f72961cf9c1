"""Simulated market data — reproducible candles and prices from explicit state.

All randomness is derived from ``(seed, step)`` held in a caller-owned
``SimulationState``.  The pure functions return the generated value
together with the next state; nothing is kept at module level.
"""

import random
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from confluence.strategy.models import CandleData


@dataclass(frozen=True)
class SimulationState:
    """Snapshot of the simulated market.

    Attributes:
        seed: Base seed for every random draw.
        step: Number of draws consumed so far.
        last_price: Most recent simulated price.
        clock: Open time of the most recent simulated candle (UTC).
        interval: Candle spacing.
        volatility: Std-dev of the per-step relative return.
    """

    seed: int
    step: int
    last_price: float
    clock: datetime
    interval: timedelta = timedelta(hours=1)
    volatility: float = 0.004
    usd_brl_rate: float = 5.40


def _rng(state: SimulationState, offset: int = 0) -> random.Random:
    return random.Random(f"{state.seed}:{state.step + offset}")


def simulate_price(state: SimulationState) -> tuple[float, SimulationState]:
    """Draw the next live price; the clock does not advance."""
    shock = _rng(state).gauss(0.0, state.volatility)
    price = max(state.last_price * (1 + shock), 0.01)
    return price, replace(state, step=state.step + 1, last_price=price)


def simulate_history(
    state: SimulationState, depth: int
) -> tuple[list[CandleData], SimulationState]:
    """Generate *depth* candles ending at ``state.clock``, oldest-first.

    The first candle opens at ``state.last_price``; the returned state
    carries the last close as its price.
    """
    if depth <= 0:
        raise ValueError(f"depth must be positive, got {depth}")

    candles: list[CandleData] = []
    price = state.last_price
    start = state.clock - state.interval * (depth - 1)

    for i in range(depth):
        rng = _rng(state, i)
        open_ = price
        close = max(open_ * (1 + rng.gauss(0.0, state.volatility)), 0.01)
        wick = abs(rng.gauss(0.0, state.volatility / 2))
        candles.append(
            CandleData(
                time=start + state.interval * i,
                open=open_,
                high=max(open_, close) * (1 + wick),
                low=min(open_, close) * (1 - wick),
                close=close,
                volume=rng.uniform(50.0, 150.0),
            )
        )
        price = close

    return candles, replace(state, step=state.step + depth, last_price=price)


class SimulatedMarket:
    """Market / rate provider backed by a ``SimulationState``.

    The current state is exposed as ``state`` so tests can seed it and
    assert on it.
    """

    def __init__(self, state: SimulationState) -> None:
        self.state = state

    async def fetch_historical_candles(self, depth: int) -> list[CandleData]:
        candles, self.state = simulate_history(self.state, depth)
        return candles

    async def fetch_latest_price(self) -> float:
        price, self.state = simulate_price(self.state)
        return price

    async def fetch_rate(self) -> float:
        return self.state.usd_brl_rate
