"""IntentClassifier + WellnessCoach – AI paths with a mocked google-genai client."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.errors import ValidationError
from core.models.activity import ActivityLog, Intent
from core.models.stats import DailyStat
from core.models.user import Goals, User
from services.gemini import (
    DEFAULT_GOALS,
    EMPTY_INSIGHT,
    FALLBACK_INSIGHT,
    IntentClassifier,
    WellnessCoach,
    build_insights_prompt,
    build_prompt,
    looks_like_api_key,
    parse_reply,
)

from conftest import FAKE_KEY


def _client(reply: str | None = None, side_effect=None) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text=reply), side_effect=side_effect
    )
    return client


AI_REPLY = json.dumps(
    {
        "intent": "meditation",
        "keywords": ["meditation", "evening", "calm", "breath", "focus", "extra"],
        "duration": "20 minutes",
        "confidence": 0.93,
    }
)


# ── key handling ────────────────────────────────────────────────────
def test_key_shape():
    assert looks_like_api_key(FAKE_KEY)
    assert not looks_like_api_key("sk-not-google")
    assert not looks_like_api_key("")
    assert not looks_like_api_key(None)


@pytest.mark.asyncio
async def test_missing_key_uses_fallback():
    clf = IntentClassifier(None)
    r = await clf.classify("ran 5 km")
    assert r.source == "fallback"
    assert r.intent is Intent.workout
    assert clf.status()["status"] == "degraded"
    assert "not configured" in clf.status()["details"]


@pytest.mark.asyncio
async def test_malformed_key_never_builds_client():
    with patch("services.gemini.genai.Client") as ctor:
        clf = IntentClassifier("not-a-real-key")
        r = await clf.classify("ate pasta")
    ctor.assert_not_called()
    assert r.source == "fallback"
    assert "invalid credential" in clf.status()["details"]


def test_valid_key_builds_client():
    with patch("services.gemini.genai.Client") as ctor:
        clf = IntentClassifier(FAKE_KEY)
    ctor.assert_called_once_with(api_key=FAKE_KEY)
    assert clf.ai_enabled


# ── AI path ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_ai_reply_is_used():
    client = _client(AI_REPLY)
    clf = IntentClassifier(None, client=client)

    r = await clf.classify("Sat quietly for twenty minutes", user_goal="sleep better")

    assert r.source == "ai"
    assert r.intent is Intent.meditation
    assert r.confidence == pytest.approx(0.93)
    assert len(r.keywords) == 5
    assert r.duration == "20 minutes"
    assert clf.status()["status"] == "healthy"

    kwargs = client.aio.models.generate_content.await_args.kwargs
    assert kwargs["contents"] == "Sat quietly for twenty minutes"
    assert "sleep better" in kwargs["config"].system_instruction
    assert kwargs["config"].response_mime_type == "application/json"


@pytest.mark.asyncio
async def test_api_error_falls_back():
    clf = IntentClassifier(None, client=_client(side_effect=RuntimeError("quota")))
    r = await clf.classify("I did a 30 minute HIIT workout")
    assert r.source == "fallback"
    assert r.intent is Intent.workout
    status = clf.status()
    assert status["status"] == "degraded"
    assert "quota" in status["details"]


@pytest.mark.asyncio
async def test_timeout_falls_back():
    async def _slow(**_):
        await asyncio.sleep(1)

    client = MagicMock()
    client.aio.models.generate_content = _slow
    clf = IntentClassifier(None, client=client, timeout_s=0.01)

    r = await clf.classify("took fish oil")
    assert r.source == "fallback"
    assert r.intent is Intent.supplement_intake
    assert "timed out" in clf.status()["details"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        None,
        "",
        "sorry, I can't help with that",
        json.dumps({"intent": "sleeping", "keywords": [], "confidence": 0.5}),
        json.dumps({"intent": "workout", "keywords": [], "confidence": 7}),
        json.dumps(["workout"]),
    ],
)
async def test_off_schema_reply_falls_back(reply):
    clf = IntentClassifier(None, client=_client(reply))
    r = await clf.classify("walked the dog")
    assert r.source == "fallback"
    assert r.intent in set(Intent)
    assert 0.0 <= r.confidence <= 1.0


@pytest.mark.asyncio
async def test_recovers_after_failure():
    client = _client(side_effect=[RuntimeError("boom"), SimpleNamespace(text=AI_REPLY)])
    clf = IntentClassifier(None, client=client)
    assert (await clf.classify("breathing")).source == "fallback"
    assert (await clf.classify("breathing")).source == "ai"
    assert clf.status()["status"] == "healthy"


@pytest.mark.asyncio
async def test_invalid_input_is_not_classified():
    client = _client(AI_REPLY)
    clf = IntentClassifier(None, client=client, max_chars=10)
    with pytest.raises(ValidationError):
        await clf.classify("   ")
    with pytest.raises(ValidationError):
        await clf.classify("x" * 11)
    client.aio.models.generate_content.assert_not_awaited()


# ── reply parsing ───────────────────────────────────────────────────
def test_parse_fenced_reply_defaults_confidence():
    raw = '```json\n{"intent": "food_intake", "keywords": ["salad"]}\n```'
    r = parse_reply(raw)
    assert r.intent is Intent.food_intake
    assert r.confidence == pytest.approx(0.8)
    assert r.source == "ai"


def test_prompt_lists_all_intents():
    prompt = build_prompt()
    for intent in Intent:
        assert intent.value in prompt
    assert "especially related to" not in prompt


# ── WellnessCoach ───────────────────────────────────────────────────
NOW = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)

SAM = User(
    id=7,
    name="Sam",
    email="sam@example.com",
    goals=Goals(body=["Run a 10k"]),
    created_at=NOW,
)


@pytest.mark.asyncio
async def test_goals_parsed_by_ai():
    reply = json.dumps({"body": ["Run a 10k", " "], "mind": ["Read daily"], "soul": []})
    client = _client(reply)
    coach = WellnessCoach(client)

    goals, source = await coach.parse_goals("run a 10k and read every day")

    assert source == "ai"
    assert goals == Goals(body=["Run a 10k"], mind=["Read daily"], soul=[])
    kwargs = client.aio.models.generate_content.await_args.kwargs
    assert kwargs["contents"] == "run a 10k and read every day"
    assert kwargs["config"].response_mime_type == "application/json"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client",
    [
        None,
        _client(side_effect=RuntimeError("quota")),
        _client("not json"),
        _client(json.dumps({"body": ["x"]})),
    ],
)
async def test_goals_default_when_ai_unavailable(client):
    goals, source = await WellnessCoach(client).parse_goals("feel better")
    assert source == "fallback"
    assert goals == DEFAULT_GOALS


@pytest.mark.asyncio
async def test_default_goals_are_not_shared():
    coach = WellnessCoach(None)
    goals, _ = await coach.parse_goals("feel better")
    goals.body.append("mutated")
    assert DEFAULT_GOALS.body == ["Maintain physical health"]


@pytest.mark.asyncio
async def test_insights_from_ai():
    client = _client("Great week, Sam! Try a longer run tomorrow.")
    text, source = await WellnessCoach(client).generate_insights(SAM, [], [])
    assert source == "ai"
    assert text.startswith("Great week, Sam!")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client, expected, source",
    [
        (None, FALLBACK_INSIGHT, "fallback"),
        (_client(side_effect=RuntimeError("boom")), FALLBACK_INSIGHT, "fallback"),
        (_client(""), EMPTY_INSIGHT, "ai"),
    ],
)
async def test_insights_fallbacks(client, expected, source):
    assert await WellnessCoach(client).generate_insights(SAM, [], []) == (expected, source)


@pytest.mark.asyncio
async def test_coach_timeout_uses_defaults():
    async def _slow(**_):
        await asyncio.sleep(1)

    client = MagicMock()
    client.aio.models.generate_content = _slow
    coach = WellnessCoach(client, timeout_s=0.01)

    assert (await coach.parse_goals("sleep more"))[1] == "fallback"
    assert (await coach.generate_insights(SAM, [], [])) == (FALLBACK_INSIGHT, "fallback")


def test_insights_prompt_carries_user_data():
    log = ActivityLog(
        id=1,
        user_id=7,
        raw_text_input="ran 5 km",
        detected_intent=Intent.workout,
        timestamp=NOW,
        created_at=NOW,
    )
    stat = DailyStat(id=1, user_id=7, date="2026-10-17", body_progress=35, updated_at=NOW)

    prompt = build_insights_prompt(SAM, [log], [stat])

    assert "Name: Sam" in prompt
    assert "Run a 10k" in prompt
    assert "workout: ran 5 km" in prompt
    assert "2026-10-17: body 35, mind 0, soul 0" in prompt


def test_classifier_exposes_client_for_coach():
    client = _client(AI_REPLY)
    assert IntentClassifier(None, client=client).client is client
    assert IntentClassifier(None).client is None
