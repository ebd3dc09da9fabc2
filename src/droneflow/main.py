"""FastAPI application factory.

Learn: App factory pattern. create_app() returns a configured FastAPI
instance and is the composition root for the realtime layer: one
ConnectionRegistry per app, shared by the SSE endpoint, the
BroadcastDispatcher, the HeartbeatScheduler and the StaleConnectionReaper.
They live on app.state, never in module globals.

Lifespan starts the two periodic tasks and, on shutdown, stops them,
closes every open stream and disposes the database engine.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from droneflow import __version__
from droneflow.api import api_router
from droneflow.config import settings
from droneflow.log_config import configure_logging
from droneflow.middleware.request_id import RequestIdMiddleware
from droneflow.realtime.dispatcher import BroadcastDispatcher
from droneflow.realtime.heartbeat import HeartbeatScheduler
from droneflow.realtime.reaper import StaleConnectionReaper
from droneflow.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


async def _cancel(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown.
    """
    configure_logging()
    logger.info(
        "droneflow.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    heartbeat: HeartbeatScheduler = app.state.heartbeat
    reaper: StaleConnectionReaper = app.state.reaper
    heartbeat_task = asyncio.create_task(heartbeat.run_loop())
    reaper_task = asyncio.create_task(reaper.run_loop())

    yield

    # Shutdown
    logger.info("droneflow.shutdown")

    heartbeat.stop()
    reaper.stop()
    await _cancel(heartbeat_task)
    await _cancel(reaper_task)

    # End every open stream so uvicorn can finish its responses
    closed = app.state.registry.close_all()
    logger.info("droneflow.subscribers_closed", count=closed)

    # Close database engine
    from droneflow.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="DroneFlow API",
        description="Drone service request tracking with live updates",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Realtime composition ─────────────────────────────────
    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.dispatcher = BroadcastDispatcher(registry)
    app.state.heartbeat = HeartbeatScheduler(
        registry, interval=settings.heartbeat_interval_seconds
    )
    app.state.reaper = StaleConnectionReaper(
        registry,
        interval=settings.reaper_interval_seconds,
        stale_after=settings.stale_after_seconds,
    )

    # ── Middleware ───────────────────────────────────────────
    app.add_middleware(RequestIdMiddleware)

    # Mount API routes (REST + SSE)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: droneflow.main:app)
app = create_app()
