"""
core/wellness.py
────────────────────────────────────────────────────────────────────────
`WellnessService` – the one object the HTTP layer talks to.

A logging request runs straight through, inside one request:

    validate text → resolve user → classify → persist log
                  → recompute today's DailyStat → build reply

Bad text and unknown users are rejected before anything is written.
Classifier and database degradations never surface here; they show up
only as `source="fallback"` and in `status()`.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Literal

from pydantic import Field

from core.errors import NotFoundError, ValidationError
from core.intent_rules import ClassificationResult, duration_minutes, validate_text
from core.models.activity import (
    ActivityDetails,
    ActivityLog,
    ActivityLogCreate,
    ExtractedKeywords,
    Intent,
    Source,
)
from core.models.base import CamelModel
from core.models.stats import DailyStat
from core.models.user import User, UserCreate, UserUpdate
from core.progress import PILLARS, compute_daily_stat, log_date, start_of_day
from services.db import Database
from services.gemini import IntentClassifier, WellnessCoach
from services.storage import BaseStore

_LOG = logging.getLogger(__name__)

INTENT_LABELS: dict[Intent, str] = {
    Intent.workout: "workout activity",
    Intent.food_intake: "food intake",
    Intent.supplement_intake: "supplement",
    Intent.meditation: "meditation session",
    Intent.general_activity_log: "wellness activity",
}

STATS_SCAN_LIMIT = 100
DAY_SCAN_LIMIT = 500
INSIGHTS_SCAN_LIMIT = 30
DEFAULT_CONFIDENCE = 0.7

Pillar = Literal["body", "mind", "soul"]


# ──────────────── results ───────────────────────────────────────────
class LogActivityResult(CamelModel):
    success: bool = True
    intent: Intent
    keywords: list[str]
    message: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: Source
    activity_id: int


class Dashboard(CamelModel):
    user: User
    recent_activities: list[ActivityLog]
    total_activities: int
    today_activities: int
    activity_breakdown: dict[str, int]
    daily_stats: DailyStat | None = None


class ActivityStats(CamelModel):
    total: int
    by_intent: dict[str, int]
    by_day: dict[str, int]
    average_confidence: float


class DayProgress(CamelModel):
    date: str
    progress: int


class WeeklyProgress(CamelModel):
    pillar: Pillar
    days: list[DayProgress]


class WellnessInsights(CamelModel):
    user_id: int
    insights: str
    source: Source


# ──────────────── pure helpers ──────────────────────────────────────
def confirmation_message(text: str, result: ClassificationResult) -> str:
    message = f'Logged "{text}" as {INTENT_LABELS[result.intent]}'
    if result.duration:
        message += f" ({result.duration})"
    if result.source == "fallback":
        message += " (using keyword matching)"
    return message


def intent_breakdown(logs: list[ActivityLog]) -> dict[str, int]:
    return dict(Counter(log.detected_intent.value for log in logs))


class WellnessService:
    def __init__(
        self,
        classifier: IntentClassifier,
        store: BaseStore,
        *,
        coach: WellnessCoach | None = None,
        database: Database | None = None,
        max_input_chars: int = 1000,
        dashboard_limit: int = 10,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._classifier = classifier
        self._store = store
        self._coach = coach or WellnessCoach(None)
        self._db = database
        self._max_chars = max_input_chars
        self._dashboard_limit = dashboard_limit
        # injectable clock for tests; defaults to the UTC date
        self._today = today or _utc_today

    # ─────────────────────────────── lifecycle ──────────────────────
    async def start(self) -> None:
        if self._db is not None:
            await self._db.start()

    async def close(self) -> None:
        await self._classifier.close()
        await self._coach.close()
        if self._db is not None:
            await self._db.dispose()

    # ─────────────────────────────── users ──────────────────────────
    async def get_user(self, user_id: int) -> User:
        user = await self._store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def sign_in(self, name: str, email: str, avatar: str | None = None) -> tuple[User, bool]:
        """Lookup-or-create by email.  `is_new_user` until onboarding sets a goal."""
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValidationError("A valid email is required")

        user = await self._store.get_user_by_email(email)
        if user is None:
            if not name or not name.strip():
                raise ValidationError("Name is required for new users")
            user = await self._store.create_user(
                UserCreate(name=name.strip(), email=email, avatar=avatar)
            )
            _LOG.info("new user %s signed up", user.id)

        return user, not user.primary_wellness_goal

    async def update_user(self, user_id: int, updates: UserUpdate) -> User:
        updates.changes()  # rejects explicit nulls before any store is touched
        if updates.email is not None:
            updates.email = updates.email.strip().lower()
            if "@" not in updates.email:
                raise ValidationError("A valid email is required")
        user = await self._store.update_user(user_id, updates)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def complete_onboarding(
        self,
        user_id: int,
        primary_wellness_goal: str,
        age: int | None = None,
    ) -> User:
        """Store the goal text and its body/mind/soul breakdown (defaults when Gemini is unavailable)."""
        if not primary_wellness_goal or not primary_wellness_goal.strip():
            raise ValidationError("A primary wellness goal is required")
        goal = primary_wellness_goal.strip()
        await self.get_user(user_id)

        goals, source = await self._coach.parse_goals(goal)
        _LOG.info("onboarding goals for user %s parsed (%s)", user_id, source)

        fields: dict[str, Any] = {"primary_wellness_goal": goal, "goals": goals}
        if age is not None:
            fields["age"] = age
        return await self.update_user(user_id, UserUpdate(**fields))

    async def get_insights(self, user_id: int) -> WellnessInsights:
        user = await self.get_user(user_id)
        recent = await self._store.list_activity_logs(user_id, INSIGHTS_SCAN_LIMIT)
        today = self._today()
        week = await self._store.list_daily_stats(
            user_id, (today - timedelta(days=6)).isoformat(), today.isoformat()
        )
        text, source = await self._coach.generate_insights(user, recent, week)
        return WellnessInsights(user_id=user_id, insights=text, source=source)

    # ─────────────────────────────── logging ────────────────────────
    async def log_activity(self, user_id: int, text: str) -> LogActivityResult:
        text = validate_text(text, self._max_chars)
        user = await self.get_user(user_id)

        _LOG.info("Processing activity for user %s: %r", user.id, text[:50])
        result = await self._classifier.classify(text, user.primary_wellness_goal)

        minutes = duration_minutes(result.duration)
        saved = await self._store.create_activity_log(
            ActivityLogCreate(
                user_id=user.id,
                raw_text_input=text,
                detected_intent=result.intent,
                extracted_keywords=ExtractedKeywords(
                    keywords=result.keywords,
                    duration=result.duration,
                    intensity=result.intensity,
                    quantity=result.quantity,
                    confidence=result.confidence,
                    source=result.source,
                ),
                details=ActivityDetails(
                    duration=minutes,
                    intensity=result.intensity,
                    quantity=result.quantity,
                ),
                duration_minutes=minutes,
            )
        )
        await self.refresh_daily_stat(user.id, log_date(saved))

        _LOG.info(
            "Activity logged: %s (confidence %.2f, %s)",
            result.intent.value, result.confidence, result.source,
        )
        return LogActivityResult(
            intent=result.intent,
            keywords=result.keywords,
            message=confirmation_message(text, result),
            confidence=result.confidence,
            source=result.source,
            activity_id=saved.id,
        )

    async def refresh_daily_stat(self, user_id: int, day: date) -> DailyStat:
        logs = await self._store.list_activity_logs(user_id, DAY_SCAN_LIMIT, since=start_of_day(day))
        return await self._store.upsert_daily_stat(compute_daily_stat(user_id, day, logs))

    async def list_activities(self, user_id: int, limit: int = 20) -> list[ActivityLog]:
        await self.get_user(user_id)
        return await self._store.list_activity_logs(user_id, limit)

    # ─────────────────────────────── reads ──────────────────────────
    async def get_dashboard(self, user_id: int) -> Dashboard:
        user = await self.get_user(user_id)
        recent = await self._store.list_activity_logs(user_id, self._dashboard_limit)

        today = self._today()
        todays = [log for log in recent if log_date(log) == today]
        stat = await self._store.get_daily_stat(user_id, today.isoformat())

        _LOG.debug("dashboard for %s: %d recent, %d today", user_id, len(recent), len(todays))
        return Dashboard(
            user=user,
            recent_activities=recent,
            total_activities=len(recent),
            today_activities=len(todays),
            activity_breakdown=intent_breakdown(recent),
            daily_stats=stat,
        )

    async def get_activity_stats(self, user_id: int, days: int = 7) -> ActivityStats:
        await self.get_user(user_id)
        cutoff = start_of_day(self._today() - timedelta(days=days))
        logs = await self._store.list_activity_logs(user_id, STATS_SCAN_LIMIT, since=cutoff)

        by_day = Counter(log_date(log).isoformat() for log in logs)
        confidences = [
            log.extracted_keywords.confidence if log.extracted_keywords else DEFAULT_CONFIDENCE
            for log in logs
        ]
        return ActivityStats(
            total=len(logs),
            by_intent=intent_breakdown(logs),
            by_day=dict(sorted(by_day.items())),
            average_confidence=round(sum(confidences) / len(confidences), 3) if confidences else 0.0,
        )

    async def get_weekly_progress(self, user_id: int, pillar: str) -> WeeklyProgress:
        pillar = pillar.lower()
        if pillar not in PILLARS:
            raise ValidationError(f"Unknown pillar {pillar!r} (expected body, mind or soul)")
        await self.get_user(user_id)

        today = self._today()
        dates = [(today - timedelta(days=i)).isoformat() for i in range(6, -1, -1)]
        stats = {
            s.date: s for s in await self._store.list_daily_stats(user_id, dates[0], dates[-1])
        }
        return WeeklyProgress(
            pillar=pillar,
            days=[
                DayProgress(
                    date=d,
                    progress=getattr(stats[d], f"{pillar}_progress") if d in stats else 0,
                )
                for d in dates
            ],
        )

    # ─────────────────────────────── meta ───────────────────────────
    async def status(self) -> dict[str, Any]:
        classifier = self._classifier.status()
        store = await self._store.health_check()
        overall = "healthy" if classifier["status"] == store["status"] == "healthy" else "degraded"
        return {"status": overall, "classifier": classifier, "store": store}


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()
