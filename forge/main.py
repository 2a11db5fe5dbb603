"""Main entry point for the forge service.

Creates the FastAPI application instance for uvicorn:

    uvicorn forge.main:app --port 8090

On startup the store, oracle and pipeline runner are created from Settings
and briefs left in ``evaluating`` are caught up in the background. On
shutdown active pipelines get a grace period before they are cancelled.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forge import __version__
from forge.api.error_handlers import register_error_handlers
from forge.api.routes.briefs import router as briefs_router
from forge.api.routes.health import router as health_router
from forge.api.routes.health import set_service_start_time
from forge.core.config import get_settings
from forge.core.logging import configure_logging, get_logger
from forge.oracle import create_oracle
from forge.oracle.protocols import OracleProtocol
from forge.pipeline.runner import create_runner
from forge.store import create_store
from forge.store.protocols import StoreProtocol


# Configure structured logging on module load
configure_logging()
logger = get_logger(__name__)


async def _close(resource: object) -> None:
    close = getattr(resource, "close", None)
    if close is not None:
        await close()


def build_lifespan(
    store: StoreProtocol | None = None,
    oracle: OracleProtocol | None = None,
):
    """Lifespan factory. Passing a store or oracle overrides the configured backend."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        settings = get_settings()
        logger.info(
            "Starting forge service",
            port=settings.port,
            oracle_backend=settings.oracle_backend,
            store_backend=settings.store_backend,
        )
        set_service_start_time()

        app.state.store = store if store is not None else create_store(settings)
        app.state.oracle = oracle if oracle is not None else create_oracle(settings)
        app.state.runner = create_runner(settings, app.state.store, app.state.oracle)

        catch_up = asyncio.create_task(app.state.runner.catch_up(), name="catch-up")

        yield

        logger.info("Shutting down forge service")
        if not catch_up.done():
            catch_up.cancel()
        await asyncio.gather(catch_up, return_exceptions=True)
        await app.state.runner.shutdown()

        # Only close backends this lifespan created
        if oracle is None:
            await _close(app.state.oracle)
        if store is None:
            await _close(app.state.store)

    return lifespan


def create_app(
    store: StoreProtocol | None = None,
    oracle: OracleProtocol | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Registers:
    - briefs_router: /v1/briefs/{brief_id}
    - health_router: GET /health, /health/ready, /health/live
    """
    app = FastAPI(
        title="Forge",
        description="Multi-agent brief evaluation, planning and build pipeline",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=build_lifespan(store, oracle),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(briefs_router)
    app.include_router(health_router)

    return app


# Create application instance
app = create_app()
