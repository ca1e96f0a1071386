# api/v1/dashboard.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from core.wellness import Dashboard, WeeklyProgress, WellnessService
from api.v1.deps import get_wellness

router = APIRouter()


@router.get("/{user_id}", response_model=Dashboard)
async def dashboard(
    user_id: int,
    wellness: WellnessService = Depends(get_wellness),
) -> Dashboard:
    return await wellness.get_dashboard(user_id)


@router.get("/{user_id}/progress/{pillar}", response_model=WeeklyProgress)
async def weekly_progress(
    user_id: int,
    pillar: str,
    wellness: WellnessService = Depends(get_wellness),
) -> WeeklyProgress:
    """Last seven days of one pillar's progress (body, mind or soul)."""
    return await wellness.get_weekly_progress(user_id, pillar)
