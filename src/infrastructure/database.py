"""Database infrastructure with SQLAlchemy async engine and session management."""

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from infrastructure.models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages SQLAlchemy async engine and sessions."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        """Initialize database manager.

        Args:
            database_url: SQLite database URL (e.g., sqlite+aiosqlite:///./data/db.db)
            echo: Whether to log emitted SQL
        """
        self.database_url = database_url
        self._ensure_data_directory()

        engine_kwargs: dict = {"echo": echo}
        if "sqlite" in database_url:
            engine_kwargs["connect_args"] = {
                "timeout": 30.0,
                "check_same_thread": False,
            }
            if ":memory:" in database_url:
                # Every connection to :memory: would otherwise see its own database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)

        self.async_session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        logger.info(f"Database engine created: {database_url}")

    def _ensure_data_directory(self) -> None:
        """Ensure the database directory exists."""
        if ":memory:" in self.database_url:
            return
        if ":///" in self.database_url:
            db_path = self.database_url.split("///")[1]
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def create_tables(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def close(self) -> None:
        """Close the database engine."""
        await self.engine.dispose()
        logger.info("Database engine closed")
