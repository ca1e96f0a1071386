from __future__ import annotations
from datetime import datetime

from pydantic import Field

from .base import CamelModel


class DailyCounts(CamelModel):
    workouts: int = 0
    calories: float = 0
    meditation: int = 0        # minutes
    focus_time: float = 0      # hours
    gratitude: int = 0
    reflection: int = 0        # minutes


class DailyStatUpsert(CamelModel):
    user_id: int
    date: str                  # YYYY-MM-DD
    body_progress: int = Field(0, ge=0, le=100)
    mind_progress: int = Field(0, ge=0, le=100)
    soul_progress: int = Field(0, ge=0, le=100)
    total_activities: int = 0
    stats: DailyCounts = DailyCounts()


class DailyStat(DailyStatUpsert):
    id: int
    updated_at: datetime
