import asyncio
import logging
import os
import sys

# Add backend/ to the path so billing.* imports without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from billing.core.database import engine
from billing.models import Base

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("reset_db")


async def reset(drop: bool = True):
    async with engine.begin() as conn:
        if drop:
            logger.info("Dropping tables: %s", ", ".join(Base.metadata.tables))
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Database ready")


if __name__ == "__main__":
    asyncio.run(reset(drop="--keep" not in sys.argv))
