"""
Database connection and session management.
Provides async database engine and session factory.
"""
from typing import AsyncGenerator
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.orm import declarative_base
from lessonguard.config import settings
from lessonguard.utils.logger import get_logger

logger = get_logger("database")

DB_SCHEMA = settings.DB_SCHEMA

# Create async engine
# Engine creation does not connect; the first session does.
# SQL logging is controlled via SQLALCHEMY_LOG_LEVEL instead of echo.
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    echo=False,
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Commits on success, rolls back on any exception raised by the handler.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            # Handler runs on this session
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}", exc_info=True)
            raise


async def init_models() -> None:
    """
    Create the schema and any missing tables.

    Only used when DB_CREATE_TABLES is enabled; production schemas are
    managed outside the application.
    """
    # Import models so they register on Base.metadata
    import lessonguard.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{DB_SCHEMA}"'))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured", schema=DB_SCHEMA)


async def check_db_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}", exc_info=True)
        return False
