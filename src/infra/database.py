"""
PostgreSQL access for transfer activity logging (SQLAlchemy async + asyncpg).

Only used when TRANSFER_ACTIVITY_LOGGING_ENABLED is set. The engine is
created lazily and the transfer_activities table is created on connect.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.infra.config.settings import get_settings
from src.infra.models import Base
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


def build_database_url() -> str:
    return (
        f"postgresql+asyncpg://{settings.POSTGRES_USER}:{settings.POSTGRES_PASSWORD}"
        f"@{settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
    )


class DatabaseManager:
    """Owns one async engine and its session factory"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or build_database_url()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> AsyncEngine:
        if self._engine is not None:
            return self._engine

        engine = create_async_engine(
            self.database_url,
            echo=settings.DB_LOGGING_ENABLED,
            pool_pre_ping=True,
            pool_size=settings.POSTGRES_MIN_POOL_SIZE,
            max_overflow=settings.POSTGRES_MAX_POOL_SIZE - settings.POSTGRES_MIN_POOL_SIZE,
            pool_recycle=3600
        )
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                version = (await conn.execute(text("SELECT version()"))).scalar() or "unknown"
        except Exception as e:
            await engine.dispose()
            logger.error(
                "Failed to connect to PostgreSQL",
                extra={"host": settings.POSTGRES_HOST, "database": settings.POSTGRES_DB, "error": str(e)}
            )
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(
            "Connected to PostgreSQL",
            extra={"host": settings.POSTGRES_HOST, "database": settings.POSTGRES_DB, "version": version[:50]}
        )
        return engine

    async def close(self) -> None:
        if self._engine is None:
            return
        engine, self._engine, self._session_factory = self._engine, None, None
        await engine.dispose()
        logger.info("PostgreSQL engine closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session, connecting on first use; rolls back on error"""
        await self.connect()
        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise


@lru_cache()
def get_database_manager() -> DatabaseManager:
    return DatabaseManager()
