from __future__ import annotations

from fastapi import APIRouter, Depends, status

from config import Settings
from core.models.user import User, UserUpdate
from core.wellness import WellnessInsights, WellnessService
from services.auth import create_token
from api.v1.deps import current_user_id, get_settings, get_wellness
from api.v1.schemas import OnboardingRequest, SignInRequest, SignInResponse

router = APIRouter()


# ───────────────────────── sign-in-or-create ───────────────
@router.post(
    "",
    response_model=SignInResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign in by email, creating the user on first visit",
)
async def sign_in(
    body: SignInRequest,
    wellness: WellnessService = Depends(get_wellness),
    settings: Settings = Depends(get_settings),
) -> SignInResponse:
    user, is_new = await wellness.sign_in(body.name, body.email, body.avatar)
    token = create_token(user.id, settings.jwt_secret, settings.jwt_ttl_minutes)
    return SignInResponse(user=user, is_new_user=is_new, token=token)


# ───────────────────────── fetch ────────────────────────────
@router.get("/me", response_model=User)
async def fetch_me(
    user_id: int = Depends(current_user_id),
    wellness: WellnessService = Depends(get_wellness),
) -> User:
    return await wellness.get_user(user_id)


@router.get("/{user_id}", response_model=User)
async def fetch_user(
    user_id: int,
    wellness: WellnessService = Depends(get_wellness),
) -> User:
    return await wellness.get_user(user_id)


# ───────────────────────── edit ─────────────────────────────
@router.patch("/{user_id}", response_model=User)
async def update_user(
    user_id: int,
    body: UserUpdate,
    wellness: WellnessService = Depends(get_wellness),
) -> User:
    return await wellness.update_user(user_id, body)


@router.post("/{user_id}/onboarding", response_model=User)
async def complete_onboarding(
    user_id: int,
    body: OnboardingRequest,
    wellness: WellnessService = Depends(get_wellness),
) -> User:
    return await wellness.complete_onboarding(user_id, body.primary_wellness_goal, body.age)


# ───────────────────────── coaching ─────────────────────────
@router.get("/{user_id}/insights", response_model=WellnessInsights)
async def insights(
    user_id: int,
    wellness: WellnessService = Depends(get_wellness),
) -> WellnessInsights:
    """Personal coaching text from recent activity and this week's progress."""
    return await wellness.get_insights(user_id)
