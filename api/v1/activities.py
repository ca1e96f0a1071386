# api/v1/activities.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from core.models.activity import ActivityLog
from core.wellness import ActivityStats, LogActivityResult, WellnessService
from api.v1.deps import get_wellness
from api.v1.schemas import LogActivityRequest

router = APIRouter()


@router.post(
    "",
    response_model=LogActivityResult,
    status_code=status.HTTP_201_CREATED,
    summary="Classify free text and record it as an activity",
)
async def log_activity(
    body: LogActivityRequest,
    wellness: WellnessService = Depends(get_wellness),
) -> LogActivityResult:
    return await wellness.log_activity(body.user_id, body.text)


@router.get(
    "/{user_id}",
    response_model=list[ActivityLog],
    summary="Most recent activities for a user, newest first",
)
async def list_activities(
    user_id: int,
    limit: int = Query(20, ge=1, le=200),
    wellness: WellnessService = Depends(get_wellness),
) -> list[ActivityLog]:
    return await wellness.list_activities(user_id, limit)


@router.get("/{user_id}/stats", response_model=ActivityStats)
async def activity_stats(
    user_id: int,
    days: int = Query(7, ge=1, le=90),
    wellness: WellnessService = Depends(get_wellness),
) -> ActivityStats:
    return await wellness.get_activity_stats(user_id, days)
