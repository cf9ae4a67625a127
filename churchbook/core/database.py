"""
Database service for ChurchBook
Async SQLite engine holding the local record store and the pending operation queue
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from churchbook.core.exceptions import StorageUnavailableError
from churchbook.core.models import Base

EXPECTED_TABLES = ('local_records', 'pending_operations')


class DatabaseService:
    """Async SQLite database service"""

    def __init__(self, database_url: str = "sqlite+aiosqlite:///./data/churchbook.db", echo: bool = False):
        self.database_url = database_url
        self.logger = logging.getLogger(__name__)

        self._ensure_data_directory()

        # StaticPool keeps a single connection, which in-memory databases need
        self.engine = create_async_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False}
        )

        self.SessionLocal = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        self.logger.info(f"Database service initialized: {database_url}")

    def _ensure_data_directory(self):
        database = make_url(self.database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    async def create_tables(self):
        """Create tables using SQLAlchemy directly"""
        self.logger.info("Creating tables using SQLAlchemy...")
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self.logger.info("All tables created successfully")
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating tables: {e}")
            raise StorageUnavailableError(f"Could not create local tables: {e}") from e

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session committed on success, rolled back on error"""
        async with self.SessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def storage_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session whose storage-layer failures surface as StorageUnavailableError"""
        try:
            async with self.get_session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            self.logger.error(f"Local storage failure: {e}")
            raise StorageUnavailableError(f"Local storage unavailable: {e}") from e

    async def health_check(self) -> bool:
        """Check database connection health"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))

                result = await session.execute(
                    text("SELECT name FROM sqlite_master WHERE type='table' "
                         "AND name IN ('local_records', 'pending_operations')")
                )
                tables = result.fetchall()

                if len(tables) < len(EXPECTED_TABLES):
                    self.logger.warning(f"Only {len(tables)}/{len(EXPECTED_TABLES)} expected tables found")
                    return False

                return True
        except SQLAlchemyError as e:
            self.logger.error(f"Database health check failed: {e}")
            return False

    async def close(self):
        """Close database connections"""
        await self.engine.dispose()
        self.logger.info("Database connections closed")
