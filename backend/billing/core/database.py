"""
Database configuration - SQLAlchemy 2.0 Async
Project: Billing Backend

Defines the engine, the session factory and the FastAPI session dependency.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from billing.core.config import settings

# Logger for this module
logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Async SQLAlchemy 2.0 engine
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,  # Log SQL in debug mode
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
)


# ------------------------------------------------------------
# Session factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency.

    Opens one session per request and closes it when the request ends.
    Anything left uncommitted by a failing handler is rolled back.

    Yields:
        AsyncSession: async database session

    Example:
        @router.get("/customers")
        async def list_customers(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_db() -> bool:
    """Return True when the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return False


async def init_db() -> None:
    """
    Verify the database is reachable at startup.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Database connection error: %s", e)
        raise


async def close_db() -> None:
    """
    Dispose of the connection pool. Called on application shutdown.
    """
    await engine.dispose()
    logger.info("Database connections closed")
