"""Main FastAPI application for tasksync.

This module creates and configures the FastAPI application with its
routers, middleware, and lifespan handler.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from tasksync.api import backup_endpoints, health, sync_endpoints
from tasksync.config import Settings, get_settings
from tasksync.core.database import get_engine, init_db
from tasksync.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        setup_logging(settings)
        logger.info("app_starting", name=settings.app_name, version=settings.app_version)

        try:
            init_db(get_engine())
            logger.info("database_initialized")
        except SQLAlchemyError as e:
            logger.error("database_initialization_failed", error=str(e))

        yield

        logger.info("app_stopping")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Offline-first sync connector and snapshot backup/restore engine",
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,  # 1 hour cache for preflight requests
    )

    app.include_router(health.router)
    app.include_router(sync_endpoints.router, prefix=settings.api_prefix)
    app.include_router(backup_endpoints.router, prefix=settings.api_prefix)

    return app


app = create_app()


def main() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "tasksync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
