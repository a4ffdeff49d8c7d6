"""
Shared fixtures.

Every test gets its own SQLite file under ``tmp_path`` with the schema
applied, so tests never see each other's rows.
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from messaging_api.app.core.config import settings
from messaging_api.app.core.db import get_connection, init_db
from messaging_api.app.services import message_service
from messaging_api.app.services.user_service import UserService


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Point the app at a fresh database file and migrate it."""
    db_path = tmp_path / "messaging.test.db"
    monkeypatch.setattr(settings, "database_url", str(db_path))
    init_db()
    return db_path


@pytest_asyncio.fixture
async def users():
    """Three registered users keyed by first name."""
    return {
        "alice": await UserService.create_user("alice@example.com", "Alice"),
        "bob": await UserService.create_user("bob@example.com", "Bob"),
        "carol": await UserService.create_user("carol@example.com", "Carol"),
    }


@pytest.fixture
def clock(monkeypatch):
    """Replace the message service clock with one that ticks a second per call."""
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()

    def fake_now() -> str:
        moment = start + timedelta(seconds=next(ticks))
        return moment.isoformat(timespec="microseconds")

    monkeypatch.setattr(message_service, "utc_now", fake_now)
    return fake_now


def count_rows(table: str) -> int:
    conn = get_connection()
    try:
        return conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()["n"]
    finally:
        conn.close()
