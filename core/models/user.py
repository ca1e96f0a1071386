from __future__ import annotations
from datetime import datetime
from typing import Literal

from pydantic import Field

from core.errors import ValidationError

from .base import CamelModel

# optional in an update, but never null once stored
_NON_NULL = ("name", "email", "supplements")


class Goals(CamelModel):
    body: list[str] = []
    mind: list[str] = []
    soul: list[str] = []


class Supplement(CamelModel):
    id: str
    name: str
    dosage: str
    frequency: str
    image_url: str | None = None


class UserCreate(CamelModel):
    name: str
    email: str
    avatar: str | None = None
    age: int | None = None
    weight: float | None = None
    height: float | None = None
    primary_wellness_goal: str | None = None
    goals: Goals | None = None
    supplements: list[Supplement] = []


class UserUpdate(CamelModel):
    """Partial profile edit – only fields explicitly sent are applied."""

    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    age: int | None = Field(None, ge=0, le=150)
    weight: float | None = Field(None, gt=0)
    height: float | None = Field(None, gt=0)
    primary_wellness_goal: str | None = None
    goals: Goals | None = None
    supplements: list[Supplement] | None = None

    def changes(self, mode: Literal["python", "json"] = "python") -> dict:
        """Fields explicitly sent; raises `ValidationError` for a null required field."""
        changes = self.model_dump(exclude_unset=True, mode=mode)
        nulls = [k for k in _NON_NULL if k in changes and changes[k] is None]
        if nulls:
            raise ValidationError(f"{', '.join(nulls)} cannot be null")
        return changes


class User(UserCreate):
    id: int
    current_streak: int = 0
    longest_streak: int = 0
    created_at: datetime
