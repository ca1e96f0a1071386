"""
services/memory_store.py
────────────────────────────────────────────────────────────────────────
In-process `BaseStore`, used on its own when no database is configured
and as the safety net behind `FallbackStore`.

Ids are ints from per-entity counters (the same key type the database
uses).  One `asyncio.Lock` serialises every operation, which is enough
because the store is never shared across processes.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import datetime

from core.errors import ConflictError
from core.models.activity import ActivityLog, ActivityLogCreate, ExtractedKeywords, Intent
from core.models.stats import DailyStat, DailyStatUpsert
from core.models.user import Goals, Supplement, User, UserCreate, UserUpdate
from core.progress import as_utc, compute_daily_stat
from services.db import utcnow
from services.storage import DEFAULT_LIST_LIMIT, BaseStore

_LOG = logging.getLogger(__name__)

# ───────── demo fixtures ────────────────────────────────────────────
DEMO_USER = UserCreate(
    name="Alex Johnson",
    email="alex@evolveai.com",
    avatar="https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=150&h=150",
    age=28,
    weight=75.5,
    height=175.0,
    primary_wellness_goal=(
        "I want to stay healthy and reduce stress through regular exercise and meditation"
    ),
    goals=Goals(
        body=["Exercise 3 times a week", "Maintain healthy weight"],
        mind=["Meditate daily", "Reduce work stress"],
        soul=["Practice gratitude", "Connect with nature"],
    ),
    supplements=[
        Supplement(id="1", name="Vitamin D3", dosage="1000 IU", frequency="Daily"),
        Supplement(id="2", name="Omega-3", dosage="1000mg", frequency="Daily"),
        Supplement(id="3", name="Magnesium", dosage="400mg", frequency="Evening"),
    ],
)

DEMO_ACTIVITIES: list[tuple[str, Intent, ExtractedKeywords, int | None]] = [
    (
        "I did a 30 minute HIIT workout this morning",
        Intent.workout,
        ExtractedKeywords(keywords=["HIIT", "workout", "morning"], duration="30 minutes", intensity="high"),
        30,
    ),
    (
        "Had a healthy chicken salad for lunch",
        Intent.food_intake,
        ExtractedKeywords(keywords=["chicken", "salad", "lunch"], quantity="1 serving"),
        None,
    ),
    (
        "Took my daily vitamin D supplement",
        Intent.supplement_intake,
        ExtractedKeywords(keywords=["vitamin", "D", "supplement"], quantity="1 capsule"),
        None,
    ),
    (
        "Meditated for 15 minutes before work",
        Intent.meditation,
        ExtractedKeywords(keywords=["meditated", "work", "morning"], duration="15 minutes"),
        15,
    ),
]


class MemoryStore(BaseStore):
    def __init__(self, seed_demo: bool = False) -> None:
        self._users: dict[int, User] = {}
        self._logs: dict[int, ActivityLog] = {}
        self._stats: dict[tuple[int, str], DailyStat] = {}
        self._user_ids = itertools.count(1)
        self._log_ids = itertools.count(1)
        self._stat_ids = itertools.count(1)
        self._lock = asyncio.Lock()

        if seed_demo:
            self._seed_demo()

    # ───────────────────────── sync internals ─────────────────
    def _seed_demo(self) -> None:
        user = self._insert_user(DEMO_USER)
        for text, intent, keywords, minutes in DEMO_ACTIVITIES:
            self._insert_log(
                ActivityLogCreate(
                    user_id=user.id,
                    raw_text_input=text,
                    detected_intent=intent,
                    extracted_keywords=keywords,
                    duration_minutes=minutes,
                )
            )
        today = utcnow().date()
        self._upsert_stat(compute_daily_stat(user.id, today, self._logs.values()))
        _LOG.info("Demo data created (%s <%s>)", user.name, user.email)

    def _find_by_email(self, email: str) -> User | None:
        return next((u for u in self._users.values() if u.email == email), None)

    def _insert_user(self, data: UserCreate) -> User:
        if self._find_by_email(data.email):
            raise ConflictError(f"Email {data.email} is already registered")
        user = User(**data.model_dump(), id=next(self._user_ids), created_at=utcnow())
        self._users[user.id] = user
        return user

    def _insert_log(self, data: ActivityLogCreate) -> ActivityLog:
        now = utcnow()
        log = ActivityLog(
            **data.model_dump(exclude={"timestamp"}),
            id=next(self._log_ids),
            timestamp=data.timestamp or now,
            created_at=now,
        )
        self._logs[log.id] = log
        return log

    def _upsert_stat(self, data: DailyStatUpsert) -> DailyStat:
        key = (data.user_id, data.date)
        existing = self._stats.get(key)
        stat_id = existing.id if existing else next(self._stat_ids)
        stat = DailyStat(**data.model_dump(), id=stat_id, updated_at=utcnow())
        self._stats[key] = stat
        return stat

    # ───────────────────────── users ──────────────────────────
    async def get_user(self, user_id: int) -> User | None:
        async with self._lock:
            return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._lock:
            return self._find_by_email(email)

    async def create_user(self, data: UserCreate) -> User:
        async with self._lock:
            return self._insert_user(data)

    async def update_user(self, user_id: int, updates: UserUpdate) -> User | None:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None

            changes = updates.changes()
            new_email = changes.get("email")
            if new_email and new_email != user.email and self._find_by_email(new_email):
                raise ConflictError(f"Email {new_email} is already registered")

            # id / created_at / streaks are not part of UserUpdate
            updated = User.model_validate({**user.model_dump(), **changes})
            self._users[user_id] = updated
            return updated

    # ───────────────────────── activity logs ──────────────────
    async def create_activity_log(self, data: ActivityLogCreate) -> ActivityLog:
        async with self._lock:
            return self._insert_log(data)

    async def list_activity_logs(
        self,
        user_id: int,
        limit: int = DEFAULT_LIST_LIMIT,
        since: datetime | None = None,
    ) -> list[ActivityLog]:
        async with self._lock:
            logs = [log for log in self._logs.values() if log.user_id == user_id]
        if since is not None:
            cutoff = as_utc(since)
            logs = [log for log in logs if as_utc(log.timestamp) >= cutoff]
        logs.sort(key=lambda log: (as_utc(log.timestamp), log.id), reverse=True)
        return logs[:limit]

    # ───────────────────────── daily stats ────────────────────
    async def upsert_daily_stat(self, data: DailyStatUpsert) -> DailyStat:
        async with self._lock:
            return self._upsert_stat(data)

    async def get_daily_stat(self, user_id: int, day: str) -> DailyStat | None:
        async with self._lock:
            return self._stats.get((user_id, day))

    async def list_daily_stats(self, user_id: int, start: str, end: str) -> list[DailyStat]:
        async with self._lock:
            stats = [
                s for (uid, day), s in self._stats.items()
                if uid == user_id and start <= day <= end
            ]
        return sorted(stats, key=lambda s: s.date)

    # ───────────────────────── meta ───────────────────────────
    async def health_check(self) -> dict[str, str]:
        async with self._lock:
            users, logs = len(self._users), len(self._logs)
        return {
            "status": "degraded",
            "details": f"Memory storage active with {users} users and {logs} activities",
        }

