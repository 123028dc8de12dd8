"""Application lifespan: startup provisioning and shutdown cleanup.

Usage:
    from sellerboard.services.lifecycle import lifespan
    app = FastAPI(lifespan=lifespan, ...)

Startup:
  - makes sure the upload directory exists
  - creates tables when AUTO_CREATE_TABLES=true (local dev only;
    deployed databases are migrated with Alembic)
Shutdown:
  - closes the shared Redis pool
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from sellerboard.config import settings
from sellerboard.utils.redis_client import close_redis

logger = logging.getLogger("sellerboard.lifecycle")


async def _ensure_tables():
    """Create any missing tables (development convenience)."""
    from sellerboard.database import Base, engine
    import sellerboard.models  # noqa: F401  (registers models on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ensured tables: %s", ", ".join(sorted(Base.metadata.tables)))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: provision on startup, release Redis on shutdown."""
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    if settings.auto_create_tables:
        await _ensure_tables()
    logger.info("sellerboard started (%s)", settings.environment)
    try:
        yield
    finally:
        await close_redis()
        logger.info("sellerboard stopped")
