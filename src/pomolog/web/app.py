"""FastAPI web application exposing the session timer to view layers."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pomolog import __version__
from pomolog.core.config import get_config
from pomolog.core.orchestrator import Orchestrator, get_orchestrator, set_orchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Starting pomolog web API...")
    orchestrator = get_orchestrator()
    await orchestrator.start()

    yield

    await orchestrator.stop()
    logger.info("Web API shutdown complete")


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Every request shares the process-wide orchestrator, so all clients see
    and control the same countdown.
    """
    if orchestrator is not None:
        set_orchestrator(orchestrator)

    config = orchestrator.config if orchestrator is not None else get_config()

    app = FastAPI(
        title="pomolog",
        description="Pomodoro focus sessions with mood and productivity feedback",
        version=__version__,
        lifespan=lifespan,
    )

    # Browser front ends poll the snapshot from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from pomolog.web.routes import api, sessions, timer

    app.include_router(api.router, prefix="/api")
    app.include_router(timer.router, prefix="/api")
    app.include_router(sessions.router, prefix="/api")

    return app


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the web server."""
    import uvicorn

    config = get_config()
    host = host or config.web.host
    port = port or config.web.port

    logger.info(f"Starting web API at http://{host}:{port}")

    uvicorn.run(
        "pomolog.web.app:create_app",
        host=host,
        port=port,
        factory=True,
        log_level=config.log_level.lower(),
    )
