"""Database engine and session helpers for the SQL store."""
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine; SQLite connections get foreign keys enabled."""
    if database_url.startswith("sqlite"):
        logger.info("Using SQLite database: %s", database_url)
    else:
        logger.info("Using %s database", database_url.split(":", 1)[0])

    engine = create_async_engine(database_url, echo=echo)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # Enable foreign keys so account deletes cascade
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def new_session(engine: AsyncEngine) -> AsyncSession:
    """Open a session whose objects stay readable after commit."""
    return AsyncSession(engine, expire_on_commit=False)
