"""WellnessService end to end on memory storage with the keyword classifier."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from core.errors import NotFoundError, ValidationError
from core.models.activity import ActivityLogCreate, Intent
from core.progress import start_of_day
from core.models.user import Goals, UserUpdate
from core.wellness import WellnessService, confirmation_message
from services.gemini import DEFAULT_GOALS, FALLBACK_INSIGHT, WellnessCoach
from core.intent_rules import fallback_classification

from conftest import TODAY, new_user


# ── log_activity ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_hiit_workout_logged(service, store):
    user = await store.create_user(new_user())
    result = await service.log_activity(user.id, "I did a 30 minute HIIT workout")

    assert result.success
    assert result.intent is Intent.workout
    assert result.source == "fallback"
    assert "exercise" in result.keywords
    assert result.confidence == pytest.approx(0.8)
    assert result.message == (
        'Logged "I did a 30 minute HIIT workout" as workout activity (30 minute) (using keyword matching)'
    )

    [saved] = await store.list_activity_logs(user.id)
    assert saved.id == result.activity_id
    assert saved.raw_text_input == "I did a 30 minute HIIT workout"
    assert saved.duration_minutes == 30
    assert saved.extracted_keywords.source == "fallback"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   "])
async def test_empty_text_rejected_without_writing(service, store, text):
    user = await store.create_user(new_user())
    with pytest.raises(ValidationError):
        await service.log_activity(user.id, text)
    assert await store.list_activity_logs(user.id) == []


@pytest.mark.asyncio
async def test_oversized_text_rejected(service, store):
    user = await store.create_user(new_user())
    with pytest.raises(ValidationError, match="too long"):
        await service.log_activity(user.id, "a" * 600)
    assert await store.list_activity_logs(user.id) == []


@pytest.mark.asyncio
async def test_unknown_user_rejected_before_classifying(store):
    classifier = AsyncMock()
    service = WellnessService(classifier, store, max_input_chars=500)
    with pytest.raises(NotFoundError):
        await service.log_activity(42, "went for a run")
    classifier.classify.assert_not_awaited()


@pytest.mark.asyncio
async def test_user_goal_is_passed_to_classifier(store):
    user = await store.create_user(new_user(primary_wellness_goal="Run a marathon"))
    classifier = AsyncMock()
    classifier.classify.return_value = fallback_classification("ran 10 km")
    service = WellnessService(classifier, store)

    await service.log_activity(user.id, "  ran 10 km  ")

    classifier.classify.assert_awaited_once_with("ran 10 km", "Run a marathon")


@pytest.mark.asyncio
async def test_logging_refreshes_daily_stat(service, store):
    user = await store.create_user(new_user())
    await service.log_activity(user.id, "30 minute run")
    await service.log_activity(user.id, "meditated for 10 minutes")

    [stat] = await store.list_daily_stats(user.id, "0000-01-01", "9999-12-31")
    assert stat.total_activities == 2
    assert stat.stats.workouts == 1
    assert stat.stats.meditation == 10
    assert stat.body_progress > 0 and stat.mind_progress > 0
    assert stat.soul_progress == 0


def test_message_without_duration_or_fallback():
    r = fallback_classification("ate a salad")
    assert confirmation_message("ate a salad", r) == 'Logged "ate a salad" as food intake (using keyword matching)'


# ── reads ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_dashboard_breakdown(service, store):
    user = await store.create_user(new_user())
    for text in ["ran 5 km", "gym session", "yoga class", "meditated"]:
        await service.log_activity(user.id, text)

    dash = await service.get_dashboard(user.id)

    assert dash.user.id == user.id
    assert dash.total_activities == 4
    assert dash.today_activities == 4
    assert dash.activity_breakdown == {"workout": 3, "meditation": 1}
    assert dash.recent_activities[0].raw_text_input == "meditated"
    assert dash.daily_stats is not None
    assert dash.daily_stats.total_activities == 4


@pytest.mark.asyncio
async def test_dashboard_is_capped_to_recent_logs(store):
    user = await store.create_user(new_user())
    service = WellnessService(AsyncMock(), store, dashboard_limit=3)
    for i in range(5):
        await store.create_activity_log(
            ActivityLogCreate(user_id=user.id, raw_text_input=f"log {i}", detected_intent=Intent.meditation)
        )

    dash = await service.get_dashboard(user.id)
    assert dash.total_activities == 3
    assert dash.activity_breakdown == {"meditation": 3}


@pytest.mark.asyncio
async def test_dashboard_unknown_user(service):
    with pytest.raises(NotFoundError):
        await service.get_dashboard(999)


@pytest.mark.asyncio
async def test_activity_stats(store):
    user = await store.create_user(new_user())
    service = WellnessService(AsyncMock(), store, today=lambda: TODAY)
    noon = start_of_day(TODAY) + timedelta(hours=12)
    for text, intent, at in [
        ("run", Intent.workout, noon),
        ("lunch", Intent.food_intake, noon - timedelta(days=1)),
        ("old run", Intent.workout, noon - timedelta(days=30)),
    ]:
        await store.create_activity_log(
            ActivityLogCreate(user_id=user.id, raw_text_input=text, detected_intent=intent, timestamp=at)
        )

    stats = await service.get_activity_stats(user.id, days=7)

    assert stats.total == 2
    assert stats.by_intent == {"workout": 1, "food_intake": 1}
    assert stats.by_day == {"2026-10-16": 1, "2026-10-17": 1}
    assert stats.average_confidence == pytest.approx(0.7)


@pytest.mark.asyncio
async def test_activity_stats_empty(service, store):
    user = await store.create_user(new_user())
    stats = await service.get_activity_stats(user.id)
    assert stats.total == 0
    assert stats.average_confidence == 0.0


@pytest.mark.asyncio
async def test_weekly_progress(service, store):
    user = await store.create_user(new_user())
    await service.log_activity(user.id, "meditated for 30 minutes")

    week = await service.get_weekly_progress(user.id, "Mind")

    assert week.pillar == "mind"
    assert len(week.days) == 7
    assert [d.date for d in week.days] == sorted(d.date for d in week.days)
    assert week.days[-1].progress == 40
    assert all(d.progress == 0 for d in week.days[:-1])


@pytest.mark.asyncio
async def test_weekly_progress_unknown_pillar(service, store):
    user = await store.create_user(new_user())
    with pytest.raises(ValidationError):
        await service.get_weekly_progress(user.id, "spirit")


# ── users ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_sign_in_creates_then_finds(service):
    user, is_new = await service.sign_in("Sam", "  Sam@Example.com ")
    assert is_new
    assert user.email == "sam@example.com"

    again, is_new = await service.sign_in("", "sam@example.com")
    assert again.id == user.id
    assert is_new  # still no goal


@pytest.mark.asyncio
async def test_sign_in_validation(service):
    with pytest.raises(ValidationError):
        await service.sign_in("Sam", "not-an-email")
    with pytest.raises(ValidationError):
        await service.sign_in("", "new@example.com")


@pytest.mark.asyncio
async def test_onboarding_completes_profile(service):
    user, _ = await service.sign_in("Sam", "sam@example.com")
    updated = await service.complete_onboarding(user.id, "Sleep better", age=34)

    assert updated.primary_wellness_goal == "Sleep better"
    assert updated.age == 34
    _, is_new = await service.sign_in("", "sam@example.com")
    assert not is_new

    with pytest.raises(ValidationError):
        await service.complete_onboarding(user.id, "  ")
    with pytest.raises(NotFoundError):
        await service.complete_onboarding(999, "Sleep better")


@pytest.mark.asyncio
async def test_status_reports_degraded_without_ai_or_db(service):
    status = await service.status()
    assert status["status"] == "degraded"
    assert status["classifier"]["status"] == "degraded"
    assert "Memory storage" in status["store"]["details"]


@pytest.mark.asyncio
async def test_onboarding_fills_goals(service):
    user, _ = await service.sign_in("Sam", "sam@example.com")
    assert user.goals is None

    updated = await service.complete_onboarding(user.id, "Sleep better")
    assert updated.goals == DEFAULT_GOALS


@pytest.mark.asyncio
async def test_onboarding_uses_parsed_goals(classifier, store):
    coach = AsyncMock()
    coach.parse_goals.return_value = (Goals(body=["Run a 10k"], mind=[], soul=["Call family"]), "ai")
    service = WellnessService(classifier, store, coach=coach)
    user = await store.create_user(new_user())

    updated = await service.complete_onboarding(user.id, "  run a 10k, call family  ")

    coach.parse_goals.assert_awaited_once_with("run a 10k, call family")
    assert updated.goals.soul == ["Call family"]


@pytest.mark.asyncio
async def test_onboarding_unknown_user_skips_goal_parsing(classifier, store):
    coach = AsyncMock()
    service = WellnessService(classifier, store, coach=coach)
    with pytest.raises(NotFoundError):
        await service.complete_onboarding(999, "Sleep better")
    coach.parse_goals.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "email", "supplements"])
async def test_update_rejects_null_required_field(service, store, field):
    user = await store.create_user(new_user())
    with pytest.raises(ValidationError):
        await service.update_user(user.id, UserUpdate(**{field: None}))
    assert (await store.get_user(user.id)).email == "sam@example.com"


@pytest.mark.asyncio
async def test_insights_fallback(service, store):
    user = await store.create_user(new_user())
    await service.log_activity(user.id, "ran 5 km")

    result = await service.get_insights(user.id)

    assert result.user_id == user.id
    assert result.insights == FALLBACK_INSIGHT
    assert result.source == "fallback"


@pytest.mark.asyncio
async def test_insights_see_recent_logs_and_week(classifier, store):
    coach = WellnessCoach(None)
    coach.generate_insights = AsyncMock(return_value=("Nice work", "ai"))
    service = WellnessService(classifier, store, coach=coach)
    user = await store.create_user(new_user())
    await service.log_activity(user.id, "meditated for 10 minutes")

    result = await service.get_insights(user.id)

    assert result.insights == "Nice work"
    seen_user, recent, week = coach.generate_insights.await_args.args
    assert seen_user.id == user.id
    assert [log.raw_text_input for log in recent] == ["meditated for 10 minutes"]
    assert len(week) == 1


@pytest.mark.asyncio
async def test_insights_unknown_user(service):
    with pytest.raises(NotFoundError):
        await service.get_insights(999)
