"""
core/progress.py
────────────────────────────────────────────────────────────────────────
Daily stats derivation.

Every intent belongs to one wellness pillar:

    workout · food_intake · supplement_intake  → body
    meditation                                 → mind
    general_activity_log                       → soul

Pillar progress = activity count bonus + duration bonus, clamped to
0–100.  The stat row for a day is fully recomputed from that day's logs
each time a new activity lands, so upserting it is idempotent.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Iterable

from core.models.activity import ActivityLog, Intent
from core.models.stats import DailyCounts, DailyStatUpsert

_LOG = logging.getLogger(__name__)

PILLARS = ("body", "mind", "soul")

PILLAR_OF: dict[Intent, str] = {
    Intent.workout: "body",
    Intent.food_intake: "body",
    Intent.supplement_intake: "body",
    Intent.meditation: "mind",
    Intent.general_activity_log: "soul",
}

# (points per activity, minutes per 10 extra points)
_WEIGHTS: dict[str, tuple[int, int]] = {
    "body": (25, 60),
    "mind": (30, 30),
    "soul": (35, 20),
}


def clamp_percent(value: float) -> int:
    return max(0, min(100, round(value)))


def as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)


def log_date(log: ActivityLog) -> date:
    return as_utc(log.timestamp).date()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def pillar_progress(count: int, minutes: int, pillar: str) -> int:
    per_activity, per_ten = _WEIGHTS[pillar]
    return clamp_percent(count * per_activity + minutes / per_ten * 10)


def compute_daily_stat(user_id: int, day: date, logs: Iterable[ActivityLog]) -> DailyStatUpsert:
    todays = [log for log in logs if log.user_id == user_id and log_date(log) == day]

    counts = {p: 0 for p in PILLARS}
    minutes = {p: 0 for p in PILLARS}
    workouts = calories = gratitude = 0
    for log in todays:
        pillar = PILLAR_OF[log.detected_intent]
        counts[pillar] += 1
        minutes[pillar] += log.duration_minutes or 0
        if log.detected_intent is Intent.workout:
            workouts += 1
        if log.details is not None:
            calories += log.details.calories or 0
            gratitude += len(log.details.gratitude or [])

    meditation = sum(
        log.duration_minutes or 0 for log in todays if log.detected_intent is Intent.meditation
    )
    stat = DailyStatUpsert(
        user_id=user_id,
        date=day.isoformat(),
        body_progress=pillar_progress(counts["body"], minutes["body"], "body"),
        mind_progress=pillar_progress(counts["mind"], minutes["mind"], "mind"),
        soul_progress=pillar_progress(counts["soul"], minutes["soul"], "soul"),
        total_activities=len(todays),
        stats=DailyCounts(
            workouts=workouts,
            calories=calories,
            meditation=meditation,
            focus_time=round(minutes["mind"] / 60, 2),
            gratitude=gratitude,
            reflection=minutes["soul"],
        ),
    )
    _LOG.debug("daily stat %s/%s → %d activities", user_id, stat.date, stat.total_activities)
    return stat
