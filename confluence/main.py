"""ConfluenceDesk — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
the live (CryptoCompare) and simulated data sources.
"""

import logging

from fastapi import FastAPI

from confluence.api.routers import router

app = FastAPI(title="ConfluenceDesk Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("confluence")


@app.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


def build_engine(config):
    """Wire providers for ``config.data_source`` into a ``DashboardEngine``."""
    from datetime import datetime, timedelta, timezone

    from confluence.engine import DashboardEngine
    from confluence.providers.analysis import build_analysis_provider
    from confluence.providers.cryptocompare_client import CryptoCompareClient
    from confluence.providers.rate_client import ExchangeRateClient
    from confluence.providers.simulation import SimulatedMarket, SimulationState

    analysis = build_analysis_provider(config)

    if config.data_source == "simulated":
        interval = timedelta(days=1) / config.candles_per_day
        now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
        market = SimulatedMarket(
            SimulationState(
                seed=config.sim_seed,
                step=0,
                last_price=config.sim_start_price,
                clock=now,
                interval=interval,
            )
        )
        return DashboardEngine(config, market=market, rates=market, analysis=analysis)

    return DashboardEngine(
        config,
        market=CryptoCompareClient(config),
        rates=ExchangeRateClient(),
        analysis=analysis,
    )


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import dataclasses

    from confluence.config import load_config

    parser = argparse.ArgumentParser(description="ConfluenceDesk BTC/USD signal dashboard")
    parser.add_argument(
        "--source",
        choices=["cryptocompare", "simulated"],
        default=None,
        help="Market data source (default: DATA_SOURCE from .env)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Load history, print the signal and exit",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the polling engine without the API server",
    )
    args = parser.parse_args()

    config = load_config()
    if args.source:
        config = dataclasses.replace(config, data_source=args.source)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = build_engine(config)

    import signal

    def handle_shutdown(signum, frame):
        logger.info("SIGINT received, stopping after the current tick.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.once:
        asyncio.run(_run_once(engine))
    elif args.engine_only:
        asyncio.run(_run_engine_only(engine))
    else:
        asyncio.run(_run_server_and_engine(engine, config.health_port))


async def _run_once(engine) -> None:
    """Single load + print, for quick checks from a terminal."""
    from confluence.cli.dashboard import print_signal

    snapshot = await engine.initialize()
    print_signal(snapshot.price, snapshot.signal, snapshot.indicators)


async def _run_engine_only(engine) -> None:
    """Run the polling engine without starting the API server."""
    await engine.initialize()
    await engine.refresh_analysis()
    await engine.run()
    logger.info("ConfluenceDesk engine stopped.")


async def _run_server_and_engine(engine, port: int) -> None:
    """Start the API server and the polling engine concurrently."""
    import asyncio

    import uvicorn

    uvi_config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(uvi_config)

    async def _run_engine():
        await engine.initialize()
        await engine.refresh_analysis()
        await engine.run()

    logger.info("Dashboard API available at http://localhost:%d", port)
    results = await asyncio.gather(
        server.serve(),
        _run_engine(),
        return_exceptions=True,
    )
    logger.info("ConfluenceDesk stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
