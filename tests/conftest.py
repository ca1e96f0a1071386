"""Shared fixtures – everything runs against memory storage, no Gemini."""
from __future__ import annotations

from datetime import date

import pytest

from config import Settings
from core.models.user import UserCreate
from core.wellness import WellnessService
from services.gemini import IntentClassifier
from services.memory_store import MemoryStore

TODAY = date(2026, 10, 17)

# right shape, obviously fake
FAKE_KEY = "AIza" + "x" * 35


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url=None,
        cloud_sql_instance=None,
        gemini_api_key=None,
        max_input_chars=500,
        seed_demo_data=True,
        jwt_secret="test-secret",
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def classifier() -> IntentClassifier:
    return IntentClassifier(None, max_chars=500)


@pytest.fixture
def service(classifier, store) -> WellnessService:
    return WellnessService(classifier, store, max_input_chars=500)


def new_user(email: str = "sam@example.com", **extra) -> UserCreate:
    return UserCreate(name="Sam", email=email, **extra)
