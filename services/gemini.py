# services/gemini.py
"""
Gemini-backed activity intent classifier.

`IntentClassifier.classify()` never fails for valid input: a missing or
malformed key, an API error, a timeout or an off-schema reply all degrade
to `core.intent_rules.fallback_classification` (tagged `source="fallback"`).

`WellnessCoach` shares the classifier's client for onboarding goal parsing
and coaching insights, with the same contract: failures return fixed
defaults, never errors.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from core.intent_rules import (
    MAX_KEYWORDS,
    ClassificationResult,
    fallback_classification,
    validate_text,
)
from core.models.activity import ActivityLog, Intent, Source
from core.models.stats import DailyStat
from core.models.user import Goals, User
from scripts.helpers import extract_clean_json

_LOG = logging.getLogger(__name__)

# ───────────── Model / limits ─────────────
CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT_S = 10.0
DEFAULT_AI_CONFIDENCE = 0.8

# Google API keys: "AIza" + 35 URL-safe chars
_KEY_RE = re.compile(r"AIza[0-9A-Za-z_\-]{35}")

_INTENT_VALUES = [i.value for i in Intent]

_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "intent": {"type": "STRING", "enum": _INTENT_VALUES},
        "keywords": {"type": "ARRAY", "items": {"type": "STRING"}},
        "duration": {"type": "STRING"},
        "intensity": {"type": "STRING"},
        "quantity": {"type": "STRING"},
        "confidence": {"type": "NUMBER", "minimum": 0, "maximum": 1},
    },
    "required": ["intent", "keywords", "confidence"],
}


class _AiReply(BaseModel):
    intent: Intent
    keywords: list[str] = []
    duration: str | None = None
    intensity: str | None = None
    quantity: str | None = None
    confidence: float | None = Field(None, ge=0.0, le=1.0)


def looks_like_api_key(key: str | None) -> bool:
    return bool(key) and _KEY_RE.fullmatch(key.strip()) is not None


def build_prompt(user_goal: str | None = None) -> str:
    goal = f', especially related to: "{user_goal}"' if user_goal else ""
    return (
        "You are an AI wellness assistant that classifies user activity logs "
        "into simple categories.\n\n"
        "INTENT CATEGORIES:\n"
        "- workout: Physical exercise, fitness activities, sports\n"
        "- food_intake: Eating, drinking, meals, snacks\n"
        "- supplement_intake: Taking vitamins, supplements, medications\n"
        "- meditation: Meditation, mindfulness, breathing exercises\n"
        f"- general_activity_log: Any other wellness-related activity{goal}\n\n"
        "TASK: Classify the user input and extract basic keywords.\n\n"
        "Respond with JSON in this exact format:\n"
        "{\n"
        '  "intent": "workout" | "food_intake" | "supplement_intake" | '
        '"meditation" | "general_activity_log",\n'
        '  "keywords": ["keyword1", "keyword2", "keyword3"],\n'
        '  "duration": "optional duration mentioned",\n'
        '  "intensity": "optional intensity mentioned",\n'
        '  "quantity": "optional quantity mentioned",\n'
        '  "confidence": 0.0-1.0\n'
        "}\n\n"
        "Extract 3-5 relevant keywords. Include duration, intensity, or "
        "quantity only if explicitly mentioned."
    )


def parse_reply(raw: str | None) -> ClassificationResult:
    """Validate Gemini's text reply; raises `ValueError` when off-schema."""
    data = extract_clean_json(raw or "")
    reply = _AiReply.model_validate(data)   # pydantic.ValidationError is a ValueError
    confidence = reply.confidence if reply.confidence is not None else DEFAULT_AI_CONFIDENCE
    return ClassificationResult(
        intent=reply.intent,
        keywords=[k for k in reply.keywords if k][:MAX_KEYWORDS],
        duration=reply.duration or None,
        intensity=reply.intensity or None,
        quantity=reply.quantity or None,
        confidence=confidence,
        source="ai",
    )


class IntentClassifier:
    """Single-shot text → intent mapper with a keyword fallback."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = CHAT_MODEL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_chars: int = 1000,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._timeout_s = timeout_s
        self._max_chars = max_chars
        self._last_error: str | None = None
        self._client = client

        if client is not None:
            self._key_state = "injected"
        elif not api_key:
            self._key_state = "missing"
            _LOG.warning("GEMINI_API_KEY not configured – using fallback classification")
        elif not looks_like_api_key(api_key):
            self._key_state = "invalid"
            _LOG.warning("GEMINI_API_KEY has an unexpected shape – using fallback classification")
        else:
            self._key_state = "ok"
            self._client = genai.Client(api_key=api_key.strip())

    @property
    def client(self) -> Any | None:
        return self._client

    @property
    def ai_enabled(self) -> bool:
        return self._client is not None

    async def classify(self, text: str, user_goal: str | None = None) -> ClassificationResult:
        text = validate_text(text, self._max_chars)

        if self._client is None:
            _LOG.debug("fallback classification (no client) for %r", text[:50])
            return fallback_classification(text)

        try:
            result = await asyncio.wait_for(self._generate(text, user_goal), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            self._last_error = f"timed out after {self._timeout_s:.0f}s"
            _LOG.warning("Gemini classification timed out, using fallback")
            return fallback_classification(text)
        except Exception as e:
            self._last_error = str(e) or type(e).__name__
            _LOG.error("Gemini API error, using fallback: %s", e)
            return fallback_classification(text)

        self._last_error = None
        return result

    async def _generate(self, text: str, user_goal: str | None) -> ClassificationResult:
        resp = await self._client.aio.models.generate_content(
            model=self._model,
            contents=text,
            config=types.GenerateContentConfig(
                system_instruction=build_prompt(user_goal),
                response_mime_type="application/json",
                response_schema=_RESPONSE_SCHEMA,
                temperature=0.2,
            ),
        )
        return parse_reply(resp.text)

    def status(self) -> dict[str, str]:
        if self._client is None:
            reason = {
                "missing": "not configured",
                "invalid": "invalid credential",
            }.get(self._key_state, "client closed")
            return {"status": "degraded", "details": f"Gemini {reason}, using keyword matching"}
        if self._last_error:
            return {"status": "degraded", "details": f"Last Gemini call failed: {self._last_error}"}
        return {"status": "healthy", "details": f"Gemini model {self._model} available"}

    async def close(self) -> None:
        self._client = None


# ───────────── onboarding goals / coaching insights ─────────────
DEFAULT_GOALS = Goals(
    body=["Maintain physical health"],
    mind=["Reduce stress and improve focus"],
    soul=["Practice gratitude and find purpose"],
)
FALLBACK_INSIGHT = (
    "Your wellness journey is unique and valuable. "
    "Keep focusing on small, consistent progress!"
)
EMPTY_INSIGHT = "Keep up the great work on your wellness journey!"

_GOALS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        pillar: {"type": "ARRAY", "items": {"type": "STRING"}}
        for pillar in ("body", "mind", "soul")
    },
    "required": ["body", "mind", "soul"],
}

_GOALS_PROMPT = (
    "Parse the user's wellness goals and categorize them into three pillars:\n\n"
    "BODY: Physical health, fitness, nutrition, exercise goals\n"
    "MIND: Mental wellness, stress management, focus, learning goals\n"
    "SOUL: Spiritual growth, purpose, gratitude, connection goals\n\n"
    'Respond with JSON: {"body": [...], "mind": [...], "soul": [...]}'
)


class _GoalsReply(BaseModel):
    body: list[str]
    mind: list[str]
    soul: list[str]


def parse_goals_reply(raw: str | None) -> Goals:
    """Raises `ValueError` unless all three pillars came back as string lists."""
    reply = _GoalsReply.model_validate(extract_clean_json(raw or ""))
    return Goals(
        body=[g for g in reply.body if g.strip()],
        mind=[g for g in reply.mind if g.strip()],
        soul=[g for g in reply.soul if g.strip()],
    )


def build_insights_prompt(user: User, recent: list[ActivityLog], week: list[DailyStat]) -> str:
    goals = user.goals.model_dump_json() if user.goals else "{}"
    activities = "\n".join(
        f"  - {log.timestamp:%Y-%m-%d} {log.detected_intent.value}: {log.raw_text_input}"
        for log in recent[:10]
    ) or "  - none yet"
    progress = "\n".join(
        f"  - {s.date}: body {s.body_progress}, mind {s.mind_progress}, soul {s.soul_progress}"
        for s in week
    ) or "  - no stats yet"
    return (
        "You are a holistic wellness coach. Analyze the user's wellness data and "
        "provide personalized insights and recommendations.\n\n"
        "USER DATA:\n"
        f"- Name: {user.name}\n"
        f"- Goals: {goals}\n"
        f"- Recent activities:\n{activities}\n"
        f"- Weekly progress:\n{progress}\n\n"
        "Provide encouraging, actionable insights focusing on:\n"
        "1. Progress patterns across Body, Mind, Soul pillars\n"
        "2. Areas of strength and improvement opportunities\n"
        "3. Specific recommendations for tomorrow\n"
        "4. Motivational message\n\n"
        "Keep it concise, positive, and personalized. Use the user's name."
    )


class WellnessCoach:
    """Goal parsing + coaching text on top of an (optional) genai client."""

    def __init__(
        self,
        client: Any | None,
        *,
        model: str = CHAT_MODEL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_s = timeout_s
        self.last_error: str | None = None

    async def parse_goals(self, goal_text: str) -> tuple[Goals, Source]:
        if self._client is None:
            return DEFAULT_GOALS.model_copy(deep=True), "fallback"
        try:
            resp = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=goal_text,
                    config=types.GenerateContentConfig(
                        system_instruction=_GOALS_PROMPT,
                        response_mime_type="application/json",
                        response_schema=_GOALS_SCHEMA,
                        temperature=0.2,
                    ),
                ),
                timeout=self._timeout_s,
            )
            goals = parse_goals_reply(resp.text)
        except Exception as e:
            self.last_error = str(e) or type(e).__name__
            _LOG.error("Failed to parse goals, using defaults: %s", self.last_error)
            return DEFAULT_GOALS.model_copy(deep=True), "fallback"

        self.last_error = None
        return goals, "ai"

    async def generate_insights(
        self,
        user: User,
        recent: list[ActivityLog],
        week: list[DailyStat],
    ) -> tuple[str, Source]:
        if self._client is None:
            return FALLBACK_INSIGHT, "fallback"
        try:
            resp = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=build_insights_prompt(user, recent, week),
                ),
                timeout=self._timeout_s,
            )
        except Exception as e:
            self.last_error = str(e) or type(e).__name__
            _LOG.error("Failed to generate insights: %s", self.last_error)
            return FALLBACK_INSIGHT, "fallback"

        self.last_error = None
        text = (resp.text or "").strip()
        return (text, "ai") if text else (EMPTY_INSIGHT, "ai")

    async def close(self) -> None:
        self._client = None
