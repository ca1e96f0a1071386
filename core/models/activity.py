from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import Field

from .base import CamelModel


class Intent(str, Enum):
    workout = "workout"
    food_intake = "food_intake"
    supplement_intake = "supplement_intake"
    meditation = "meditation"
    general_activity_log = "general_activity_log"


Source = Literal["ai", "fallback"]


class ExtractedKeywords(CamelModel):
    keywords: list[str] = []
    duration: str | None = None
    intensity: str | None = None
    quantity: str | None = None
    confidence: float = Field(0.7, ge=0.0, le=1.0)
    source: Source = "fallback"


class Exercise(CamelModel):
    name: str
    sets: int | None = None
    reps: int | None = None
    weight: float | None = None


class ActivityDetails(CamelModel):
    duration: int | None = None          # minutes
    intensity: str | None = None
    quantity: str | None = None
    notes: str | None = None
    exercises: list[Exercise] | None = None
    supplements: list[str] | None = None
    calories: float | None = None
    mood: int | None = Field(None, ge=1, le=10)
    energy: int | None = Field(None, ge=1, le=10)
    gratitude: list[str] | None = None
    reflection: str | None = None


class ActivityLogCreate(CamelModel):
    user_id: int
    raw_text_input: str
    detected_intent: Intent
    extracted_keywords: ExtractedKeywords | None = None
    details: ActivityDetails | None = None
    duration_minutes: int | None = None
    timestamp: datetime | None = None    # defaults to "now" in the store


class ActivityLog(ActivityLogCreate):
    id: int
    timestamp: datetime
    created_at: datetime
