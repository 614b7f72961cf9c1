"""ConfluenceDesk — dashboard engine (orchestration loop).

Connects the market/rate/analysis providers to the indicator and signal
pipeline.  One-shot historical load, then a periodic price tick that
updates the last candle and recomputes everything.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Protocol

from confluence.api.routers import update_analysis, update_dashboard_status, update_snapshot
from confluence.config import Config
from confluence.providers.analysis import AnalysisProvider
from confluence.providers.models import AnalysisResult
from confluence.strategy.models import (
    CandleData,
    IndicatorSeries,
    IndicatorValues,
    SignalDetails,
    validate_series,
)
from confluence.strategy.signals import evaluate_signal
from confluence.strategy.snapshot import compute_indicators, compute_series

logger = logging.getLogger("confluence.engine")


class MarketDataProvider(Protocol):
    async def fetch_historical_candles(self, depth: int) -> list[CandleData]: ...

    async def fetch_latest_price(self) -> float: ...


class RateProvider(Protocol):
    async def fetch_rate(self) -> float: ...


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything derived from one pipeline run, swapped in as a unit."""

    price: float
    indicators: IndicatorValues
    series: IndicatorSeries
    signal: Optional[SignalDetails]
    candle_count: int
    updated_at: str


def apply_price_tick(candles: list[CandleData], price: float) -> CandleData:
    """Replace the last candle with one whose close is *price*.

    High and low widen to include the tick.  Only the last slot of
    *candles* changes.
    """
    if not candles:
        raise ValueError("Cannot apply a price tick to an empty series")
    last = candles[-1]
    updated = replace(
        last,
        close=price,
        high=max(last.high, price),
        low=min(last.low, price),
    )
    candles[-1] = updated
    return updated


class DashboardEngine:
    """Runs the indicator + signal pipeline on load and on every price tick.

    Args:
        config: Application configuration.
        market: Provider of historical candles and the latest price.
        rates: Provider of the USD/BRL rate.
        analysis: Optional advisory analysis provider.
    """

    def __init__(
        self,
        config: Config,
        market: MarketDataProvider,
        rates: RateProvider,
        analysis: Optional[AnalysisProvider] = None,
    ) -> None:
        self._config = config
        self._market = market
        self._rates = rates
        self._analysis = analysis
        self._candles: list[CandleData] = []
        self._snapshot: Optional[DashboardSnapshot] = None
        self._analysis_result: Optional[AnalysisResult] = None
        self._analysis_error: Optional[str] = None
        self._usd_brl_rate: float = 0.0
        self._busy: bool = False
        self._running: bool = False
        self._tick_count: int = 0

    # ── Read-only views ──────────────────────────────────────────────────

    @property
    def snapshot(self) -> Optional[DashboardSnapshot]:
        return self._snapshot

    @property
    def candles(self) -> list[CandleData]:
        return list(self._candles)

    @property
    def usd_brl_rate(self) -> float:
        return self._usd_brl_rate

    @property
    def analysis(self) -> Optional[AnalysisResult]:
        return self._analysis_result

    @property
    def analysis_error(self) -> Optional[str]:
        return self._analysis_error

    @property
    def busy(self) -> bool:
        return self._busy

    # ── Pipeline ─────────────────────────────────────────────────────────

    def run_pipeline(
        self, price: float, utc_now: Optional[datetime] = None
    ) -> DashboardSnapshot:
        """Recompute indicators and signal from the current series.

        The new snapshot replaces the old one in a single assignment.  If
        the signal engine declines (too little history) the previous
        signal is carried over.
        """
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        indicators = compute_indicators(
            self._candles,
            candles_per_day=self._config.candles_per_day,
            fib_lookback_days=self._config.fib_lookback_days,
        )
        series = compute_series(self._candles)
        signal = evaluate_signal(
            price,
            self._candles,
            indicators,
            min_candles=self._config.signal_min_candles,
        )
        if signal is None:
            previous = self._snapshot.signal if self._snapshot else None
            logger.info(
                "Signal skipped: %d candles < %d required",
                len(self._candles), self._config.signal_min_candles,
            )
            signal = previous

        snapshot = DashboardSnapshot(
            price=price,
            indicators=indicators,
            series=series,
            signal=signal,
            candle_count=len(self._candles),
            updated_at=utc_now.isoformat(),
        )
        self._snapshot = snapshot
        update_snapshot(snapshot, list(self._candles))
        return snapshot

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self, utc_now: Optional[datetime] = None) -> DashboardSnapshot:
        """Load the exchange rate and candle history, then run the pipeline once.

        Provider failures propagate to the caller.
        """
        self._busy = True
        try:
            self._usd_brl_rate = await self._rates.fetch_rate()
            candles = await self._market.fetch_historical_candles(
                self._config.history_depth
            )
            validate_series(candles)
            self._candles = list(candles)
            price = self._candles[-1].close
            snapshot = self.run_pipeline(price, utc_now)
        finally:
            self._busy = False

        update_dashboard_status(
            running=True,
            source=self._config.data_source,
            usd_brl_rate=self._usd_brl_rate,
            candle_count=len(self._candles),
            started_at=snapshot.updated_at,
        )
        logger.info(
            "Loaded %d candles — price %.2f, signal %s",
            len(self._candles), price,
            snapshot.signal.signal if snapshot.signal else "none",
        )
        return snapshot

    async def tick(self, utc_now: Optional[datetime] = None) -> dict:
        """Fetch one live price, update the last candle and recompute.

        Returns a dict describing the action taken:

        - ``{"action": "skipped", "reason": "in_flight" | "not_initialized"}``
        - ``{"action": "updated", "price": ..., "signal": ...}``
        """
        if self._busy:
            return {"action": "skipped", "reason": "in_flight"}
        if not self._candles:
            return {"action": "skipped", "reason": "not_initialized"}

        self._busy = True
        try:
            price = await self._market.fetch_latest_price()
            apply_price_tick(self._candles, price)
            snapshot = self.run_pipeline(price, utc_now)
        finally:
            self._busy = False

        self._tick_count += 1
        update_dashboard_status(
            tick_count=self._tick_count,
            last_tick_at=snapshot.updated_at,
        )
        return {
            "action": "updated",
            "price": price,
            "signal": snapshot.signal.signal if snapshot.signal else None,
        }

    async def refresh_analysis(self) -> Optional[AnalysisResult]:
        """Ask the analysis provider for an advisory read of the current VWAP.

        Failures are logged and recorded; the previous result is kept.
        """
        snapshot = self._snapshot
        if self._analysis is None or snapshot is None or snapshot.indicators.vwap is None:
            return None
        try:
            result = await self._analysis.analyze(snapshot.price, snapshot.indicators.vwap)
        except Exception as exc:
            logger.warning("Analysis provider failed: %s", exc)
            self._analysis_error = str(exc)
            update_analysis(self._analysis_result, self._analysis_error)
            return None

        self._analysis_result = result
        self._analysis_error = None
        update_analysis(result, None)
        return result

    def stop(self) -> None:
        """Signal the loop to stop; an in-flight tick still completes."""
        self._running = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: int | None = None,
        max_ticks: int = 0,
        analysis_every: int = 30,
    ) -> list[dict]:
        """Tick until stopped.

        Args:
            poll_interval: Seconds between ticks. Defaults to config.
            max_ticks: Stop after this many ticks (0 = unlimited).
            analysis_every: Refresh the advisory analysis every N
                successful ticks (0 = never).

        Returns:
            List of per-tick result dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds

        self._running = True
        results: list[dict] = []
        tick = 0

        while self._running:
            tick += 1
            try:
                result = await self.tick()
                results.append(result)
                logger.info("Tick %d: %s", tick, result.get("action", "unknown"))
                if (
                    analysis_every > 0
                    and result.get("action") == "updated"
                    and self._tick_count % analysis_every == 0
                ):
                    await self.refresh_analysis()
            except Exception as exc:
                logger.error("Tick %d error: %s", tick, exc)
                results.append({"action": "error", "reason": str(exc)})
                update_dashboard_status(last_error=str(exc))

            if max_ticks > 0 and tick >= max_ticks:
                break

            # Interruptible sleep: checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        update_dashboard_status(running=False)
        return results
