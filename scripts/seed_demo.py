"""
Create the tables and seed the demo user + sample activities into the
configured database (DATABASE_URL / CLOUD_SQL_CONNECTION_NAME).

Usage
-----

    # demo user "Alex Johnson" with four sample activities
    python -m scripts.seed_demo

    # custom activity texts (JSON list of strings), classified on insert
    python -m scripts.seed_demo --file path/to/activities.json
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from config import get_settings
from core.intent_rules import duration_minutes, fallback_classification
from core.models.activity import ActivityLogCreate, ExtractedKeywords
from core.models.user import User
from core.progress import compute_daily_stat, start_of_day
from core.wellness import DAY_SCAN_LIMIT
from services.db import Database, utcnow
from services.memory_store import DEMO_ACTIVITIES, DEMO_USER
from services.sql_store import SqlStore
from services.storage import BaseStore


async def seed_activities(store: BaseStore, texts: list[str] | None) -> tuple[User, int]:
    """
    Insert the demo user plus activities; returns (user, rows inserted).

    The default demo activities are only inserted once per user.  Today's
    DailyStat is recomputed afterwards either way.
    """
    user = await store.get_user_by_email(DEMO_USER.email) or await store.create_user(DEMO_USER)

    if texts is None:
        if await store.list_activity_logs(user.id, limit=1):
            rows = []
        else:
            rows = [
                ActivityLogCreate(
                    user_id=user.id,
                    raw_text_input=text,
                    detected_intent=intent,
                    extracted_keywords=keywords,
                    duration_minutes=minutes,
                )
                for text, intent, keywords, minutes in DEMO_ACTIVITIES
            ]
    else:
        rows = []
        for text in texts:
            parsed = fallback_classification(text)
            rows.append(
                ActivityLogCreate(
                    user_id=user.id,
                    raw_text_input=text,
                    detected_intent=parsed.intent,
                    extracted_keywords=ExtractedKeywords(
                        keywords=parsed.keywords,
                        duration=parsed.duration,
                        intensity=parsed.intensity,
                        quantity=parsed.quantity,
                        confidence=parsed.confidence,
                    ),
                    duration_minutes=duration_minutes(parsed.duration),
                )
            )

    for row in rows:
        await store.create_activity_log(row)

    today = utcnow().date()
    todays = await store.list_activity_logs(user.id, DAY_SCAN_LIMIT, since=start_of_day(today))
    await store.upsert_daily_stat(compute_daily_stat(user.id, today, todays))
    return user, len(rows)


async def _seed(texts: list[str] | None) -> None:
    settings = get_settings()
    if not settings.database_configured:
        raise SystemExit("Set DATABASE_URL or CLOUD_SQL_CONNECTION_NAME first")

    db = Database(settings.model_copy(update={"db_create_tables": True}))
    await db.start()
    if not db.available:
        raise SystemExit(f"Database unreachable: {db.last_error}")

    try:
        user, inserted = await seed_activities(SqlStore(db), texts)
    finally:
        await db.dispose()
    print(f"✓ inserted {inserted} activities for user {user.id} <{user.email}>")


def _load_json(path: Path) -> list[str]:
    data = json.loads(path.read_text())
    if not isinstance(data, list) or not all(isinstance(t, str) for t in data):
        raise ValueError("JSON file must contain a list of activity texts")
    return data


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--file",
        type=Path,
        help="optional JSON file with activity texts to seed (overrides defaults)",
    )
    args = parser.parse_args()

    texts = _load_json(args.file) if args.file else None
    asyncio.run(_seed(texts))


if __name__ == "__main__":
    main()
