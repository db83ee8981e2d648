"""FastAPI application factory and lifecycle management."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from locindex import __version__
from locindex.adapters.base.registry import open_database
from locindex.api.deps import set_database
from locindex.api.v1.router import router as v1_router
from locindex.config.settings import Settings
from locindex.observability.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        # Auto-detect locindex.yaml if present
        yaml_path = Path("locindex.yaml")
        if yaml_path.exists():
            logger.info("Loading configuration from %s", yaml_path)
            settings = Settings.from_yaml(yaml_path)
        else:
            settings = Settings()
        setup_logging(settings.observability)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the database on startup and close it on shutdown."""
        logger.info("Starting locindex v%s", __version__)

        database = await open_database(settings.database_uri)
        set_database(database)
        app.state.settings = settings
        app.state.database = database

        logger.info("locindex is ready to serve requests on port %d", settings.server.port)
        yield

        logger.info("Shutting down locindex...")
        set_database(None)
        await database.close()

    app = FastAPI(
        title="locindex",
        description="Query Library of Congress subject and name records.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.include_router(v1_router, prefix="/v1")

    return app
