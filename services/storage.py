"""
services/storage.py
────────────────────────────────────────────────────────────────────────
Store interface + the database-with-memory-fallback implementation.

`FallbackStore` routes every call through `_with_fallback()`:

    database not started   → memory store
    database call raises   → log, memory store
    memory store raises    → StoreExhaustedError

Domain errors (`core.errors.WellnessError`, e.g. a duplicate email) are
answers, not outages, so they propagate untouched.  A row that fails
model validation is bad data, not an outage: it surfaces as
`InvalidRecordError` instead of being answered from memory, where the
same id may belong to someone else.

Known gap: rows written to memory while the database was down stay
there; nothing reconciles them once the database comes back.
"""
from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Awaitable, Callable, TypeVar

from pydantic import ValidationError as SchemaError

from core.errors import InvalidRecordError, StoreExhaustedError, WellnessError
from core.models.activity import ActivityLog, ActivityLogCreate
from core.models.stats import DailyStat, DailyStatUpsert
from core.models.user import User, UserCreate, UserUpdate
from services.db import Database

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIST_LIMIT = 50


class BaseStore(abc.ABC):
    # ─────────────────────────────── users ──────────────────────────
    @abc.abstractmethod
    async def get_user(self, user_id: int) -> User | None: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abc.abstractmethod
    async def create_user(self, data: UserCreate) -> User: ...

    @abc.abstractmethod
    async def update_user(self, user_id: int, updates: UserUpdate) -> User | None: ...

    # ─────────────────────────────── activity logs ──────────────────
    @abc.abstractmethod
    async def create_activity_log(self, data: ActivityLogCreate) -> ActivityLog: ...

    @abc.abstractmethod
    async def list_activity_logs(
        self,
        user_id: int,
        limit: int = DEFAULT_LIST_LIMIT,
        since: datetime | None = None,
    ) -> list[ActivityLog]:
        """Newest first."""

    # ─────────────────────────────── daily stats ────────────────────
    @abc.abstractmethod
    async def upsert_daily_stat(self, data: DailyStatUpsert) -> DailyStat: ...

    @abc.abstractmethod
    async def get_daily_stat(self, user_id: int, day: str) -> DailyStat | None: ...

    @abc.abstractmethod
    async def list_daily_stats(self, user_id: int, start: str, end: str) -> list[DailyStat]: ...

    # ─────────────────────────────── meta ───────────────────────────
    @abc.abstractmethod
    async def health_check(self) -> dict[str, str]: ...


class FallbackStore(BaseStore):
    def __init__(self, database: Database, primary: BaseStore, memory: BaseStore) -> None:
        self._db = database
        self._primary = primary
        self._memory = memory
        self.fallback_count = 0
        self.last_degradation: str | None = None

    async def _with_fallback(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback_operation: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> T:
        if not self._db.available:
            _LOG.info("Database not available for %s, using memory storage", operation_name)
            return await self._run_fallback(fallback_operation, operation_name)

        try:
            return await operation()
        except WellnessError:
            raise
        except SchemaError as e:
            _LOG.error("Stored data failed validation in %s: %s", operation_name, e)
            raise InvalidRecordError(f"Stored data is invalid for {operation_name}") from e
        except Exception as e:
            self.fallback_count += 1
            self.last_degradation = f"{operation_name}: {e}"
            _LOG.warning("Database error in %s, falling back to memory: %s", operation_name, e)
            return await self._run_fallback(fallback_operation, operation_name)

    async def _run_fallback(self, fallback_operation: Callable[[], Awaitable[T]], operation_name: str) -> T:
        try:
            return await fallback_operation()
        except WellnessError:
            raise
        except SchemaError as e:
            _LOG.error("Memory data failed validation in %s: %s", operation_name, e)
            raise InvalidRecordError(f"Stored data is invalid for {operation_name}") from e
        except Exception as e:
            _LOG.error("Memory storage failed in %s: %s", operation_name, e)
            raise StoreExhaustedError(f"Storage unavailable for {operation_name}") from e

    # ─────────────────────────────── users ──────────────────────────
    async def get_user(self, user_id: int) -> User | None:
        return await self._with_fallback(
            lambda: self._primary.get_user(user_id),
            lambda: self._memory.get_user(user_id),
            "get_user",
        )

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._with_fallback(
            lambda: self._primary.get_user_by_email(email),
            lambda: self._memory.get_user_by_email(email),
            "get_user_by_email",
        )

    async def create_user(self, data: UserCreate) -> User:
        return await self._with_fallback(
            lambda: self._primary.create_user(data),
            lambda: self._memory.create_user(data),
            "create_user",
        )

    async def update_user(self, user_id: int, updates: UserUpdate) -> User | None:
        return await self._with_fallback(
            lambda: self._primary.update_user(user_id, updates),
            lambda: self._memory.update_user(user_id, updates),
            "update_user",
        )

    # ─────────────────────────────── activity logs ──────────────────
    async def create_activity_log(self, data: ActivityLogCreate) -> ActivityLog:
        return await self._with_fallback(
            lambda: self._primary.create_activity_log(data),
            lambda: self._memory.create_activity_log(data),
            "create_activity_log",
        )

    async def list_activity_logs(
        self,
        user_id: int,
        limit: int = DEFAULT_LIST_LIMIT,
        since: datetime | None = None,
    ) -> list[ActivityLog]:
        return await self._with_fallback(
            lambda: self._primary.list_activity_logs(user_id, limit, since),
            lambda: self._memory.list_activity_logs(user_id, limit, since),
            "list_activity_logs",
        )

    # ─────────────────────────────── daily stats ────────────────────
    async def upsert_daily_stat(self, data: DailyStatUpsert) -> DailyStat:
        return await self._with_fallback(
            lambda: self._primary.upsert_daily_stat(data),
            lambda: self._memory.upsert_daily_stat(data),
            "upsert_daily_stat",
        )

    async def get_daily_stat(self, user_id: int, day: str) -> DailyStat | None:
        return await self._with_fallback(
            lambda: self._primary.get_daily_stat(user_id, day),
            lambda: self._memory.get_daily_stat(user_id, day),
            "get_daily_stat",
        )

    async def list_daily_stats(self, user_id: int, start: str, end: str) -> list[DailyStat]:
        return await self._with_fallback(
            lambda: self._primary.list_daily_stats(user_id, start, end),
            lambda: self._memory.list_daily_stats(user_id, start, end),
            "list_daily_stats",
        )

    # ─────────────────────────────── meta ───────────────────────────
    async def health_check(self) -> dict[str, str]:
        if not self._db.available:
            memory = await self._memory.health_check()
            reason = "not configured" if not self._db.configured else f"unreachable ({self._db.last_error})"
            return {
                "status": "degraded",
                "details": f"Database {reason}; {memory['details']}",
            }
        return await self._primary.health_check()
