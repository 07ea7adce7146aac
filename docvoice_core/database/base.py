"""
Persistence foundations: declarative base, timestamp columns and the
async engine/session owner used by every repository.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import structlog
from sqlalchemy import DateTime, Integer, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..config import DatabaseSettings

logger = structlog.get_logger(__name__)

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _async_url(url: str) -> str:
    for plain, driver in _ASYNC_DRIVERS.items():
        if url.startswith(plain):
            return driver + url[len(plain):]
    return url


class Base(DeclarativeBase):
    """Declarative base; every table has an integer surrogate key."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            row[column.name] = value.isoformat() if isinstance(value, datetime) else value
        return row


class TimestampMixin:
    """``created_at`` / ``updated_at``; repositories also set ``updated_at`` on bulk updates."""

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class DatabaseManager:
    """
    Owns the async engine for one database URL.

    Usage:
        db = DatabaseManager.from_settings(settings.database)
        async with db.session() as session:
            record = await SubmissionRepository(session).get_record(42)
        await db.close()
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        self.url = _async_url(url)
        self.echo = echo
        # SQLite's pool rejects sizing arguments
        self.pool_options: Dict[str, Any] = {}
        if not self.url.startswith("sqlite"):
            self.pool_options = {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": True,
            }

        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "DatabaseManager":
        return cls(
            settings.url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            echo=settings.echo,
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.url, echo=self.echo, **self.pool_options)
        return self._engine

    @property
    def sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)
        return self._sessions

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """One unit of work: committed on exit, rolled back if the block raises or is cancelled."""
        async with self.sessions() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error("database_health_check_failed", error=str(e))
            return False
        return True

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None


__all__ = [
    "Base",
    "TimestampMixin",
    "DatabaseManager",
    "utcnow",
]
