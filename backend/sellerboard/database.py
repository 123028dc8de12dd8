"""Database engine, session factory, and declarative base.

One DeclarativeBase for the whole service. The only table it owns is
`seller_onboarding`; Alembic reads `Base.metadata` for autogenerate.

Session dependency for FastAPI:
  - get_db()  → yields an AsyncSession, rolls back on error
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from sellerboard.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (local dev) does not take pool sizing arguments
    if url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {"echo": settings.debug, "pool_size": 20, "max_overflow": 10}


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for all service models."""
    pass


async def get_db() -> AsyncSession:
    """Yield a session for one request.

    Step writes commit themselves through the record store, so this
    dependency only guarantees that a failed request never leaves an
    open transaction behind.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
