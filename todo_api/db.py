import asyncio
import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings
from .models import Base

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection"""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the async engine; pool settings only apply to server databases"""
    if settings.is_sqlite:
        engine = create_async_engine(settings.database_url, echo=settings.db_echo)
        enable_sqlite_foreign_keys(engine)
        return engine

    return create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_pre_ping=True,  # Verify connections before use
        pool_size=5,
        max_overflow=10,
        pool_timeout=20,
        pool_recycle=300,
        connect_args={"server_settings": {"application_name": "todo_api"}},
    )


engine = create_engine_from_settings(get_settings())

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(max_retries: int = 3, retry_delay: float = 5) -> None:
    """Initialize the database by creating all tables"""
    for attempt in range(max_retries):
        try:
            logger.info("Database connection attempt %d/%d", attempt + 1, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
            return
        except Exception as e:
            logger.warning("Database connection attempt %d failed: %s", attempt + 1, e)
            if attempt < max_retries - 1:
                logger.info("Retrying in %s seconds...", retry_delay)
                await asyncio.sleep(retry_delay)
            else:
                logger.error("All database connection attempts failed")
                raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        yield session


async def close_db() -> None:
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
