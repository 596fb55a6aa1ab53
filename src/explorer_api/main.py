"""Entry point for the chain explorer backend.

Wires all components together and serves the FastAPI application with
uvicorn. The lifespan context manager owns every long-lived resource:
the database connection, the submission client and the health refresher
task.

Component wiring order (in _build_components):
1. ChainDatabase (aiosqlite connection, not yet opened)
2. ChainGateway (implementation selected by database.backend)
3. AddressSummaryEngine (addresses, UTXOs, history)
4. StakeAccountReconciler (delegation and rewards)
5. TxSubmitClient (submission proxy)
6. ChainTipClient (network tip, only when health.tip_url is set)
7. HealthStatusCache (probes gateway, network tip and submission node)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from explorer_api.api.app import create_api_app
from explorer_api.config import AppSettings, DatabaseSettings
from explorer_api.gateway.base import ChainGateway
from explorer_api.gateway.database import ChainDatabase
from explorer_api.gateway.sqlite_gateway import SqliteChainGateway
from explorer_api.health.status import HealthStatusCache
from explorer_api.health.tip import ChainTipClient
from explorer_api.history.summary import AddressSummaryEngine
from explorer_api.logging import get_logger, setup_logging
from explorer_api.staking.reconciler import StakeAccountReconciler
from explorer_api.submit.client import TxSubmitClient


def create_gateway(settings: DatabaseSettings, database: ChainDatabase) -> ChainGateway:
    """Return the gateway implementation named by settings.backend."""
    if settings.backend == "sqlite":
        return SqliteChainGateway(database)
    raise ValueError(f"Unsupported database backend: {settings.backend}")


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Does NOT open the database connection -- that happens in the lifespan.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    database = ChainDatabase(
        settings.database.path,
        read_only=settings.database.read_only,
    )
    gateway = create_gateway(settings.database, database)
    engine = AddressSummaryEngine(gateway, settings.api)
    reconciler = StakeAccountReconciler(gateway, settings.staking)
    submit_client = TxSubmitClient(settings.submit, settings.health)
    tip_client = ChainTipClient(settings.health) if settings.health.tip_url else None
    health = HealthStatusCache(
        gateway,
        settings.health,
        expected_best_block=tip_client.expected_best_block if tip_client else None,
        submit_probe=submit_client.is_available,
    )

    return {
        "database": database,
        "gateway": gateway,
        "engine": engine,
        "reconciler": reconciler,
        "submit_client": submit_client,
        "tip_client": tip_client,
        "health": health,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: opens the database, stores components on app.state and
    starts the health refresher as a background task.

    On shutdown, whether or not the refresher failed: cancels it, closes
    the outbound HTTP clients and the database.
    """
    logger = get_logger("explorer_api.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    await components["database"].connect()

    app.state.engine = components["engine"]
    app.state.reconciler = components["reconciler"]
    app.state.submit_client = components["submit_client"]
    app.state.health = components["health"]

    health_task: asyncio.Task | None = None
    if settings.health.enabled:
        health_task = asyncio.create_task(components["health"].run())

    logger.info("lifespan_started", db_path=settings.database.path)

    try:
        yield
    finally:
        if health_task is not None:
            health_task.cancel()
            try:
                await health_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("health_task_failed", exc_info=True)

        await components["submit_client"].close()
        if components.get("tip_client") is not None:
            await components["tip_client"].close()
        await components["database"].close()

        logger.info("explorer_backend_stopped")


async def run() -> None:
    """Run the explorer backend until the server exits."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("explorer_api.main")

    # 3. Build all components
    components = _build_components(settings)

    app = create_api_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_explorer_backend",
        host=settings.server.host,
        port=settings.server.port,
        addresses_request_limit=settings.api.addresses_request_limit,
        history_response_limit=settings.api.history_response_limit,
    )

    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
