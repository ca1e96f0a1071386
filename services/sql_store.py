"""
services/sql_store.py
────────────────────────────────────────────────────────────────────────
`BaseStore` over the SQLAlchemy models in `services.db`.

Any SQLAlchemy / driver exception escapes as-is so `FallbackStore` can
reroute; only a duplicate email is translated into `ConflictError`.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from core.errors import ConflictError
from core.models.activity import ActivityLog, ActivityLogCreate
from core.models.stats import DailyStat, DailyStatUpsert
from core.models.user import User, UserCreate, UserUpdate
from services.db import ActivityLogRow, DailyStatRow, Database, UserRow, utcnow
from services.storage import DEFAULT_LIST_LIMIT, BaseStore

_LOG = logging.getLogger(__name__)


class SqlStore(BaseStore):
    def __init__(self, database: Database) -> None:
        self._db = database

    # ───────────────────────── users ──────────────────────────
    async def get_user(self, user_id: int) -> User | None:
        async with self._db.session() as s:
            row = await s.get(UserRow, user_id)
            return User.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._db.session() as s:
            row = (
                await s.execute(select(UserRow).where(UserRow.email == email).limit(1))
            ).scalar_one_or_none()
            return User.model_validate(row) if row else None

    async def create_user(self, data: UserCreate) -> User:
        async with self._db.session() as s:
            if await self._email_taken(s, data.email):
                raise ConflictError(f"Email {data.email} is already registered")

            row = UserRow(**data.model_dump(mode="json"), created_at=utcnow())
            s.add(row)
            try:
                await s.commit()
            except IntegrityError as e:
                await s.rollback()
                raise ConflictError(f"Email {data.email} is already registered") from e
            await s.refresh(row)
            _LOG.info("created user %s", row.id)
            return User.model_validate(row)

    async def update_user(self, user_id: int, updates: UserUpdate) -> User | None:
        changes = updates.changes(mode="json")
        async with self._db.session() as s:
            row = await s.get(UserRow, user_id)
            if row is None:
                return None

            new_email = changes.get("email")
            if new_email and new_email != row.email and await self._email_taken(s, new_email):
                raise ConflictError(f"Email {new_email} is already registered")

            # nothing is written unless the merged profile is still a valid User
            merged = User.model_validate({**User.model_validate(row).model_dump(), **updates.changes()})

            for field, value in changes.items():
                setattr(row, field, value)
            try:
                await s.commit()
            except IntegrityError as e:
                await s.rollback()
                raise ConflictError("Email is already registered") from e
            return merged

    @staticmethod
    async def _email_taken(s, email: str) -> bool:
        found = await s.execute(select(func.count()).select_from(UserRow).where(UserRow.email == email))
        return bool(found.scalar_one())

    # ───────────────────────── activity logs ──────────────────
    async def create_activity_log(self, data: ActivityLogCreate) -> ActivityLog:
        now = utcnow()
        row = ActivityLogRow(
            **data.model_dump(mode="json", exclude={"timestamp"}),
            timestamp=data.timestamp or now,
            created_at=now,
        )
        async with self._db.session() as s:
            s.add(row)
            await s.commit()
            await s.refresh(row)
            return ActivityLog.model_validate(row)

    async def list_activity_logs(
        self,
        user_id: int,
        limit: int = DEFAULT_LIST_LIMIT,
        since: datetime | None = None,
    ) -> list[ActivityLog]:
        q = select(ActivityLogRow).where(ActivityLogRow.user_id == user_id)
        if since is not None:
            q = q.where(ActivityLogRow.timestamp >= since)
        q = q.order_by(ActivityLogRow.timestamp.desc(), ActivityLogRow.id.desc()).limit(limit)

        async with self._db.session() as s:
            rows = (await s.execute(q)).scalars().all()
            return [ActivityLog.model_validate(r) for r in rows]

    # ───────────────────────── daily stats ────────────────────
    async def upsert_daily_stat(self, data: DailyStatUpsert) -> DailyStat:
        payload = data.model_dump(mode="json")
        async with self._db.session() as s:
            row = (
                await s.execute(
                    select(DailyStatRow)
                    .where(DailyStatRow.user_id == data.user_id, DailyStatRow.date == data.date)
                )
            ).scalar_one_or_none()

            if row is None:                          # Insert
                row = DailyStatRow(**payload)
                s.add(row)
            else:                                    # Update
                for field, value in payload.items():
                    setattr(row, field, value)
            row.updated_at = utcnow()

            await s.commit()
            await s.refresh(row)
            return DailyStat.model_validate(row)

    async def get_daily_stat(self, user_id: int, day: str) -> DailyStat | None:
        async with self._db.session() as s:
            row = (
                await s.execute(
                    select(DailyStatRow)
                    .where(DailyStatRow.user_id == user_id, DailyStatRow.date == day)
                )
            ).scalar_one_or_none()
            return DailyStat.model_validate(row) if row else None

    async def list_daily_stats(self, user_id: int, start: str, end: str) -> list[DailyStat]:
        q = (
            select(DailyStatRow)
            .where(
                DailyStatRow.user_id == user_id,
                DailyStatRow.date >= start,
                DailyStatRow.date <= end,
            )
            .order_by(DailyStatRow.date)
        )
        async with self._db.session() as s:
            rows = (await s.execute(q)).scalars().all()
            return [DailyStat.model_validate(r) for r in rows]

    # ───────────────────────── meta ───────────────────────────
    async def health_check(self) -> dict[str, str]:
        if await self._db.ping():
            return {"status": "healthy", "details": "Database connection working"}
        return {"status": "degraded", "details": f"Database error: {self._db.last_error}"}
