from __future__ import annotations

import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from app.core.config import Settings
from app.db import build_db_components, create_schema
from app.repositories import ClaimLedger


class FakeClock:
    """Manually advanced UTC clock shared across threads."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 1, 1, 18, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> datetime:
        with self._lock:
            self._now += timedelta(seconds=seconds)
            return self._now


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path/'claims.db'}",
        admin_password="letmein",
        recaptcha_secret=None,
        scheduler_enabled=False,
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = build_db_components(f"sqlite:///{tmp_path/'ledger.db'}")
    create_schema(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def ledger(session_factory) -> ClaimLedger:
    return ClaimLedger(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
