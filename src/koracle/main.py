"""Entry point for the K-factor price oracle.

Wires all components together and serves the HTTP API. The database is
opened and closed by the FastAPI lifespan so the store, the KInfo cache and
the API share a single asyncio event loop and a single connection.

Component wiring order (in build_components):
1. AppSettings (configuration)
2. Logging setup
3. OracleDatabase (SQLite, WAL)
4. BatchClock (shared coarse time source)
5. PriceHistoryStore / KInfoStore
6. StaticTokenRegistry (token metadata)
7. PriceAggregator
8. VolatilityEstimator
9. KInfoCache
10. NotificationChannel / InMemoryAccounting
11. OracleGateway
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from koracle.accounting import InMemoryAccounting
from koracle.clock import BatchClock
from koracle.config import AppSettings
from koracle.data.database import OracleDatabase
from koracle.data.store import KInfoStore, PriceHistoryStore
from koracle.events import NotificationChannel
from koracle.gateway import OracleGateway
from koracle.logging import get_logger, setup_logging
from koracle.pricing.aggregator import PriceAggregator
from koracle.pricing.kinfo_cache import KInfoCache
from koracle.pricing.volatility import VolatilityEstimator
from koracle.tokens import StaticTokenRegistry


def build_components(
    settings: AppSettings, clock: BatchClock | None = None
) -> dict[str, Any]:
    """Build all oracle components from settings.

    Does NOT connect the database; that happens in the lifespan (API mode)
    or run() (headless mode).

    Args:
        settings: Application-wide settings.
        clock: Optional time source override (tests inject a manual clock).

    Returns:
        Dict mapping component names to instances.
    """
    database = OracleDatabase(settings.store.db_path, settings.store.synchronous)
    if clock is None:
        clock = BatchClock(settings.clock.batch_seconds)

    store = PriceHistoryStore(database)
    k_info_store = KInfoStore(database)
    token_registry = StaticTokenRegistry(settings.tokens.registry)
    aggregator = PriceAggregator(store, token_registry)
    estimator = VolatilityEstimator(store, settings.volatility)
    cache = KInfoCache(estimator, k_info_store, settings.cache, clock)
    channel = NotificationChannel()
    accounting = InMemoryAccounting()

    gateway = OracleGateway(
        store=store,
        aggregator=aggregator,
        cache=cache,
        channel=channel,
        accounting=accounting,
        clock=clock,
        settings=settings.gateway,
    )

    return {
        "database": database,
        "clock": clock,
        "store": store,
        "k_info_store": k_info_store,
        "token_registry": token_registry,
        "aggregator": aggregator,
        "estimator": estimator,
        "cache": cache,
        "channel": channel,
        "accounting": accounting,
        "gateway": gateway,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database on startup and close it on shutdown."""
    logger = get_logger("koracle.main")
    components = app.state.components

    await components["database"].connect()
    app.state.gateway = components["gateway"]
    logger.info("lifespan_started")

    yield

    await components["database"].close()
    logger.info("oracle_stopped")


async def run() -> None:
    """Run the oracle.

    When the API is enabled (API_ENABLED=true, the default) the oracle is
    served over HTTP by uvicorn. Otherwise the database is opened and the
    process idles until SIGINT/SIGTERM, for embedding hosts that drive the
    gateway in-process.
    """
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("koracle.main")

    components = build_components(settings)

    if settings.api.enabled:
        from koracle.api.app import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_api",
            host=settings.api.host,
            port=settings.api.port,
            db_path=settings.store.db_path,
        )

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        logger.info("starting_without_api", db_path=settings.store.db_path)
        try:
            await components["database"].connect()
            await stop.wait()
        finally:
            await components["database"].close()
            logger.info("oracle_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
