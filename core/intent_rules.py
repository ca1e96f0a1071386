"""
core/intent_rules.py
────────────────────────────────────────────────────────────────────────
Deterministic intent classification used whenever Gemini is unavailable.

Everything here is a pure function of the input text:

1.  `validate_text()`          – reject empty / oversized input
2.  `fallback_classification()` – keyword sets in fixed priority order
        workout › food_intake › supplement_intake › meditation › general
3.  `duration_minutes()`        – "30 minute" → 30, "2 hr" → 120

Keywords are matched at word starts, so "meditated" never trips the
food keyword "ate" and "brunch" never counts as a run.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from core.errors import ValidationError
from core.models.activity import Intent, Source

# ──────────────── keyword sets (priority order) ─────────────────────
# each entry is a regex fragment anchored at a word start
_INTENT_PATTERNS: list[tuple[Intent, str, tuple[str, ...]]] = [
    (
        Intent.workout,
        "exercise",
        (r"workout", r"exercis", r"run\b", r"runs\b", r"running", r"ran\b", r"jog",
         r"gym", r"training", r"trained", r"yoga", r"hiit", r"lift", r"cycl",
         r"swim", r"squat", r"push-?ups?", r"cardio", r"pilates"),
    ),
    (
        Intent.food_intake,
        "food",
        (r"ate\b", r"eat", r"food", r"lunch", r"dinner", r"breakfast", r"meal",
         r"snack", r"brunch", r"salad", r"drank", r"drink"),
    ),
    (
        Intent.supplement_intake,
        "supplement",
        (r"vitamin", r"supplement", r"pills?\b", r"took\b", r"capsule", r"tablet",
         r"omega", r"magnesium", r"creatine", r"probiotic"),
    ),
    (
        Intent.meditation,
        "meditation",
        (r"meditat", r"breath", r"mindful", r"relax", r"calm"),
    ),
]

_COMPILED = [
    (intent, label, re.compile(r"\b(?:" + "|".join(words) + ")"))
    for intent, label, words in _INTENT_PATTERNS
]

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(minute|hour|min|hr)", re.IGNORECASE)
_INTENSITY_RE = re.compile(
    r"\b(light|easy|gentle|moderate|medium|hard|intense|high|low|vigorous|heavy|brisk)\b",
    re.IGNORECASE,
)
_QUANTITY_RE = re.compile(
    r"\b(\d+(?:\.\d+)?)\s*(reps|sets|servings?|cups?|glass(?:es)?|capsules?|pills?|"
    r"tablets?|mg|grams?|g|km|miles?|steps|laps|slices?|bowls?|pieces?)\b",
    re.IGNORECASE,
)
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'\-]*")

STOPWORDS = frozenset(
    """
    the and for with this that was were did had has have just then than
    about after before into onto from over some more very really today
    yesterday morning evening night took got went done my our your their
    its his her you they them she him are but not too also all
    """.split()
)

FALLBACK_CONFIDENCE = 0.8
GENERAL_CONFIDENCE = 0.6
MAX_KEYWORDS = 5
MAX_CONTENT_WORDS = 3


@dataclass(frozen=True)
class ClassificationResult:
    intent: Intent
    keywords: list[str] = field(default_factory=list)
    duration: str | None = None
    intensity: str | None = None
    quantity: str | None = None
    confidence: float = FALLBACK_CONFIDENCE
    source: Source = "fallback"


# ──────────────── validation ────────────────────────────────────────
def validate_text(text: str | None, max_chars: int) -> str:
    """Return the stripped text or raise `ValidationError`."""
    if text is None or not text.strip():
        raise ValidationError("Activity text cannot be empty")
    if len(text) > max_chars:
        raise ValidationError(f"Activity text too long (max {max_chars} characters)")
    return text.strip()


# ──────────────── fallback classifier ───────────────────────────────
def detect_intent(text: str) -> tuple[Intent, str | None]:
    lowered = text.lower()
    for intent, label, pattern in _COMPILED:
        if pattern.search(lowered):
            return intent, label
    return Intent.general_activity_log, None


def content_words(text: str, limit: int = MAX_CONTENT_WORDS) -> list[str]:
    out: list[str] = []
    for match in _WORD_RE.finditer(text.lower()):
        word = match.group(0).strip("'-")
        if len(word) <= 2 or word in STOPWORDS or word in out:
            continue
        out.append(word)
        if len(out) == limit:
            break
    return out


def extract_duration(text: str) -> str | None:
    m = _DURATION_RE.search(text)
    return f"{m.group(1)} {m.group(2).lower()}" if m else None


def extract_intensity(text: str) -> str | None:
    m = _INTENSITY_RE.search(text)
    return m.group(1).lower() if m else None


def extract_quantity(text: str) -> str | None:
    m = _QUANTITY_RE.search(text)
    return f"{m.group(1)} {m.group(2).lower()}" if m else None


def fallback_classification(text: str) -> ClassificationResult:
    intent, label = detect_intent(text)

    keywords = [label] if label else []
    for word in content_words(text):
        if word not in keywords:
            keywords.append(word)

    return ClassificationResult(
        intent=intent,
        keywords=keywords[:MAX_KEYWORDS],
        duration=extract_duration(text),
        intensity=extract_intensity(text),
        quantity=extract_quantity(text),
        confidence=FALLBACK_CONFIDENCE if label else GENERAL_CONFIDENCE,
        source="fallback",
    )


# ──────────────── helpers ───────────────────────────────────────────
def duration_minutes(duration: str | None) -> int | None:
    """Best-effort conversion of a free-form duration to whole minutes."""
    if not duration:
        return None
    m = _DURATION_RE.search(duration)
    if not m:
        return None
    value = float(m.group(1))
    if m.group(2).lower() in ("hour", "hr"):
        value *= 60
    return round(value)
