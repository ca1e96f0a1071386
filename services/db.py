"""
services/db.py
────────────────────────────────────────────────────────────────────────
* Async SQLAlchemy v2 setup
* Models for users / activity_logs / daily_stats
* `Database` – explicitly started & disposed engine owner (no globals)
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from config import Settings

_LOG = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ───────── declarative base ──────────────────────────────────────────
Base = declarative_base(cls=AsyncAttrs)


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    avatar: Mapped[str | None] = mapped_column(String)
    age: Mapped[int | None] = mapped_column(Integer)
    weight: Mapped[float | None] = mapped_column(Float)
    height: Mapped[float | None] = mapped_column(Float)
    primary_wellness_goal: Mapped[str | None] = mapped_column(Text)
    goals: Mapped[dict | None] = mapped_column(JSON)        # {body, mind, soul}
    supplements: Mapped[list] = mapped_column(JSON, default=list)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ActivityLogRow(Base):
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    raw_text_input: Mapped[str] = mapped_column(Text)
    detected_intent: Mapped[str] = mapped_column(String)
    extracted_keywords: Mapped[dict | None] = mapped_column("extracted_keywords_json", JSON)
    details: Mapped[dict | None] = mapped_column(JSON)
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class DailyStatRow(Base):
    __tablename__ = "daily_stats"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_stats_user_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    date: Mapped[str] = mapped_column(String(10))                # YYYY-MM-DD
    body_progress: Mapped[int] = mapped_column(Integer, default=0)
    mind_progress: Mapped[int] = mapped_column(Integer, default=0)
    soul_progress: Mapped[int] = mapped_column(Integer, default=0)
    total_activities: Mapped[int] = mapped_column(Integer, default=0)
    stats: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ───────── connection helper ────────────────────────────────────────
async def _create_engine(settings: Settings) -> tuple[AsyncEngine, Any | None]:
    """Return (engine, cloud-sql connector or None)."""
    # 1) plain TCP URL
    if settings.database_url:
        return create_async_engine(settings.database_url, pool_pre_ping=True), None

    # 2) Cloud SQL connector (only if URL not supplied)
    if not settings.cloud_sql_instance:
        raise RuntimeError(
            "Set either DATABASE_URL or CLOUD_SQL_CONNECTION_NAME env var"
        )

    # lazy import here
    try:
        from google.cloud.sql.connector import IPTypes, create_async_connector  # type: ignore
    except ImportError as exc:
        raise RuntimeError(
            "cloud-sql-python-connector missing. Run:\n"
            "pip install 'cloud-sql-python-connector[asyncpg]>=1.4.0'"
        ) from exc

    connector = await create_async_connector()

    async def _getconn():  # type: ignore[name-defined]
        return await connector.connect_async(
            settings.cloud_sql_instance,
            "asyncpg",
            user=settings.db_user,
            password=settings.db_pass,
            db=settings.db_name,
            ip_type=IPTypes.PRIVATE,
        )

    engine = create_async_engine(
        "postgresql+asyncpg://",
        async_creator=_getconn,
        pool_pre_ping=True,
    )
    return engine, connector


class Database:
    """
    Owns the async engine.  `start()` never raises: a database that cannot
    be configured simply leaves `available` False so callers fall back.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._engine: AsyncEngine | None = None
        self._connector: Any | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None
        self.last_error: str | None = None

    @property
    def configured(self) -> bool:
        return self._settings.database_configured

    @property
    def available(self) -> bool:
        return self._sessions is not None

    async def start(self) -> None:
        if not self.configured:
            _LOG.warning("DATABASE_URL not configured – database operations will use memory storage")
            return
        try:
            self._engine, self._connector = await _create_engine(self._settings)
            if self._settings.db_create_tables:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            self.last_error = str(e)
            _LOG.error("Failed to connect to database: %s", e)
            await self.dispose()
            return
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        _LOG.info("Database connection established")

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        if self._connector is not None:
            await self._connector.close_async()
        self._engine = None
        self._connector = None
        self._sessions = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._sessions is None:
            raise RuntimeError("database not available")
        async with self._sessions() as session:
            yield session

    async def ping(self) -> bool:
        """Cheap round-trip used by the health check."""
        if self._sessions is None:
            return False
        try:
            async with self.session() as s:
                await s.execute(select(UserRow.id).limit(1))
        except Exception as e:
            self.last_error = str(e)
            _LOG.error("Database connection test failed: %s", e)
            return False
        self.last_error = None
        return True
