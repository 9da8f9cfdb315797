import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from commentboard.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Storage handle owning the async engine and its session factory.

    Built once at startup and stored on ``app.state.database``; request
    handlers receive sessions through the ``get_db`` dependency.  The
    owner is responsible for calling ``dispose()`` on shutdown.
    """

    def __init__(self, url: str, **engine_kwargs) -> None:
        self.url = url
        self.engine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        kwargs: dict = {"echo": settings.DEBUG}
        if not settings.DATABASE_URL.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=0, pool_timeout=30, pool_pre_ping=True)
        return cls(settings.DATABASE_URL, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        """Run ``SELECT 1``; used at startup to surface a bad DATABASE_URL early."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.error("Database connection failed: %s", exc)
            return False

    async def create_all(self) -> None:
        # Models must be imported so their tables are registered on Base.metadata.
        import commentboard.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Transactional scope: commit on success, roll back on any exception."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


async def get_db(request: Request):
    async with request.app.state.database.session() as session:
        yield session
