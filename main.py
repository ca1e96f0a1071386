from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from core.errors import WellnessError
from core.wellness import WellnessService
from services.db import Database
from services.gemini import IntentClassifier, WellnessCoach
from services.memory_store import MemoryStore
from services.sql_store import SqlStore
from services.storage import FallbackStore
from api.v1.router import api_router

_LOG = logging.getLogger(__name__)


def build_wellness_service(settings: Settings) -> WellnessService:
    """Wire classifier + database/memory store into one service object."""
    database = Database(settings)
    store = FallbackStore(
        database,
        primary=SqlStore(database),
        memory=MemoryStore(seed_demo=settings.seed_demo_data),
    )
    classifier = IntentClassifier(
        settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_s=settings.classifier_timeout_seconds,
        max_chars=settings.max_input_chars,
    )
    coach = WellnessCoach(
        classifier.client,
        model=settings.gemini_model,
        timeout_s=settings.classifier_timeout_seconds,
    )
    return WellnessService(
        classifier,
        store,
        coach=coach,
        database=database,
        max_input_chars=settings.max_input_chars,
        dashboard_limit=settings.dashboard_recent_limit,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        wellness = build_wellness_service(settings)
        await wellness.start()
        app.state.wellness = wellness
        _LOG.info("Wellness API started (env=%s)", settings.env_name)
        try:
            yield
        finally:
            await wellness.close()

    app = FastAPI(title="Wellness Log API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    # CORS (public demo only – lock down in prod)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WellnessError)
    async def _wellness_error(request: Request, exc: WellnessError) -> JSONResponse:
        if exc.status_code >= 500:
            _LOG.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"detail": str(exc)}, status_code=exc.status_code)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["meta"])
    async def health(request: Request) -> dict:
        status = await request.app.state.wellness.status()
        return {**status, "env": settings.env_name}

    return app


app = create_app()
