"""
Centralised settings loader.

Every knob is read from the environment (or a local `.env`).  The app
factory takes an explicit `Settings` instance, so tests build their own
instead of touching the cached one.
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class Settings(BaseSettings):
    # ─── runtime ─────────────────────────────────────────────────────
    env_name: str = "local"
    log_level: str = "INFO"

    # ─── DB (either a plain URL or a Cloud SQL instance) ────────────
    database_url: str | None = None
    cloud_sql_instance: str | None = Field(
        None, validation_alias=AliasChoices("CLOUD_SQL_CONNECTION_NAME", "cloud_sql_instance")
    )
    db_user: str | None = None
    db_pass: str | None = None
    db_name: str | None = None
    db_create_tables: bool = True

    # ─── Gemini intent classifier ───────────────────────────────────
    gemini_api_key: str | None = Field(
        None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "VITE_GEMINI_API_KEY", "gemini_api_key"),
    )
    gemini_model: str = "gemini-2.5-flash"
    classifier_timeout_seconds: float = 10.0
    max_input_chars: int = 1000

    # ─── wellness service ───────────────────────────────────────────
    dashboard_recent_limit: int = 10
    seed_demo_data: bool = True

    # ─── session tokens ─────────────────────────────────────────────
    jwt_secret: str = "changeme"
    jwt_ttl_minutes: int = 60 * 24

    # allow other teammates’ env-vars without crashing
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @property
    def database_configured(self) -> bool:
        return bool(self.database_url or self.cloud_sql_instance)


# ------------------------------------------------------------------ #
#  Cached accessor
# ------------------------------------------------------------------ #
@lru_cache
def get_settings() -> Settings:  # pragma: no cover
    return Settings()  # type: ignore[call-arg]
