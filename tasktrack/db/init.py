"""Initialize database tables."""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import SQLModel

# Imported for their side effect of registering tables on SQLModel.metadata
from tasktrack.models import Account, RefreshToken, Task  # noqa: F401

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables in the database."""
    logger.info("Creating all tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Tables created successfully.")
