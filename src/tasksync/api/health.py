"""Health check endpoint."""

from typing import Any, Dict

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from tasksync.api.dependencies import engine_dependency, settings_dependency
from tasksync.config import Settings
from tasksync.utils.logging import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


def check_database(engine: Engine) -> bool:
    """Check database connectivity."""
    try:
        with engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError as e:
        logger.error("database_check_failed", error=str(e))
        return False


@router.get("/health")
async def health(
    engine: Engine = engine_dependency,
    settings: Settings = settings_dependency,
) -> Dict[str, Any]:
    """Report liveness and database reachability."""
    database_ok = await run_in_threadpool(check_database, engine)
    return {
        "status": "healthy" if database_ok else "degraded",
        "version": settings.app_version,
        "database": database_ok,
    }
