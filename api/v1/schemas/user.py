from __future__ import annotations

from pydantic import Field

from core.models.base import CamelModel
from core.models.user import User


class SignInRequest(CamelModel):
    name: str = ""
    email: str = Field(..., examples=["alex@example.com"])
    avatar: str | None = None


class SignInResponse(CamelModel):
    user: User
    is_new_user: bool
    token: str


class OnboardingRequest(CamelModel):
    primary_wellness_goal: str = Field(..., examples=["Sleep better and run a 10k"])
    age: int | None = Field(None, ge=0, le=150)
