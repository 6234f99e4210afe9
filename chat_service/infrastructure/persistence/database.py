"""
Database engine and session factory.

Provides:
- Database: owns the async engine and session maker
- to_async_url: sync URL -> async driver URL
"""
import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger("chat-service.infrastructure.persistence.database")


def to_async_url(database_url: str) -> str:
    """
    Convert a database URL to its async driver form.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        URL using the aiosqlite driver for SQLite, other URLs unchanged
    """
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


class Database:
    """Async database engine with a session factory"""

    def __init__(self, database_url: str):
        self.database_url = database_url

        # Ensure data directory exists for SQLite
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            db_path = database_url.replace("sqlite:///", "", 1)
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        async_url = to_async_url(database_url)
        if ":memory:" in async_url:
            # One shared connection, otherwise every connection gets its own empty DB
            self.engine = create_async_engine(
                async_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_async_engine(async_url, echo=False, future=True, pool_pre_ping=True)

        if "sqlite" in async_url:
            @event.listens_for(self.engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                """Set SQLite pragmas for concurrent access"""
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute("PRAGMA busy_timeout=30000")
                cursor.close()

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(f"Database initialized with URL: {database_url}")

    async def create_all(self) -> None:
        """Create tables"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized")

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")
