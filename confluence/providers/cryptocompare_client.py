"""CryptoCompare REST API async client.

Fetches BTC/USD historical OHLCV candles and the latest spot price.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from confluence.config import Config
from confluence.providers.http import request_with_retry
from confluence.strategy.models import CandleData

logger = logging.getLogger("confluence")

# CryptoCompare caps a single histo* request at 2000 points.
_MAX_PAGE = 2000

_HISTO_ENDPOINTS = {
    "hour": "/data/v2/histohour",
    "day": "/data/v2/histoday",
}


class CryptoCompareClient:
    """Async client wrapping the CryptoCompare min-api."""

    def __init__(
        self,
        config: Config,
        fsym: str = "BTC",
        tsym: str = "USD",
    ) -> None:
        self._config = config
        self._base_url = config.cryptocompare_base_url
        self._fsym = fsym
        self._tsym = tsym
        self._granularity = config.candle_granularity
        self._headers = {"Content-Type": "application/json"}
        if config.cryptocompare_api_key:
            self._headers["Authorization"] = f"Apikey {config.cryptocompare_api_key}"

    # ── Candle data ──────────────────────────────────────────────────────

    async def _fetch_page(self, limit: int, to_ts: Optional[int]) -> list[CandleData]:
        url = f"{self._base_url}{_HISTO_ENDPOINTS[self._granularity]}"
        params = {
            "fsym": self._fsym,
            "tsym": self._tsym,
            "limit": limit,
            "aggregate": 1,
        }
        if to_ts is not None:
            params["toTs"] = to_ts

        resp = await request_with_retry("get", url, headers=self._headers, params=params)
        payload = resp.json()

        if payload.get("Response") != "Success" or not isinstance(
            payload.get("Data", {}).get("Data"), list
        ):
            raise ValueError(
                f"Invalid response from CryptoCompare API: "
                f"{payload.get('Message', 'missing data')}"
            )

        candles: list[CandleData] = []
        for d in payload["Data"]["Data"]:
            # Points before the asset was listed come back zero-filled
            if not d.get("close"):
                continue
            candles.append(
                CandleData(
                    time=datetime.fromtimestamp(int(d["time"]), tz=timezone.utc),
                    open=float(d["open"]),
                    high=float(d["high"]),
                    low=float(d["low"]),
                    close=float(d["close"]),
                    volume=float(d["volumefrom"]),
                )
            )
        return candles

    async def fetch_historical_candles(self, depth: int) -> list[CandleData]:
        """Fetch the most recent *depth* candles, oldest-first.

        Pages backwards in chunks of at most 2000 points until *depth*
        candles are collected or the API runs out of history.
        """
        if depth <= 0:
            raise ValueError(f"depth must be positive, got {depth}")

        by_time: dict[datetime, CandleData] = {}
        to_ts: Optional[int] = None

        while len(by_time) < depth:
            limit = min(depth - len(by_time), _MAX_PAGE)
            page = await self._fetch_page(limit, to_ts)
            new = [c for c in page if c.time not in by_time]
            if not new:
                break
            for c in new:
                by_time[c.time] = c
            to_ts = int(min(c.time for c in new).timestamp()) - 1

        candles = sorted(by_time.values(), key=lambda c: c.time)[-depth:]
        logger.info(
            "Fetched %d %s candles for %s/%s",
            len(candles), self._granularity, self._fsym, self._tsym,
        )
        return candles

    # ── Spot price ───────────────────────────────────────────────────────

    async def fetch_latest_price(self) -> float:
        """Return the latest spot price."""
        url = f"{self._base_url}/data/price"
        params = {"fsym": self._fsym, "tsyms": self._tsym}
        resp = await request_with_retry("get", url, headers=self._headers, params=params)
        data = resp.json()
        price = data.get(self._tsym)
        if not price or float(price) <= 0:
            raise ValueError("Invalid price response from CryptoCompare API")
        return float(price)
