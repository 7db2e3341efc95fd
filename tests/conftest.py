from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Iterator

import pytest

from state_audit import Actor, SqliteStore, logging_utils
from state_audit.config import _load_settings_cached

from entity_models import SCHEMA, Charge, Invoice, MultiMachine

_ENV_KEYS = (
    "LOG_LEVEL",
    "LOG_FILE",
    "STATE_AUDIT_STRUCTURED_LOGGING",
    "SQLITE_PATH",
    "SQLITE_WAL",
    "SQLITE_LOCK_TIMEOUT_SECONDS",
    "STATE_AUDIT_ASSOCIATION",
    "STATE_AUDIT_MESSAGES_STORAGE",
    "STATE_AUDIT_MACHINES_PATH",
)


def pytest_sessionstart(session: pytest.Session) -> None:
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    _load_settings_cached.cache_clear()
    monkeypatch.setattr(logging_utils, "_logging_configured", True)
    for entity_type in (Charge, MultiMachine, Invoice):
        entity_type.audit_logs.schema.invalidate()
    yield
    _load_settings_cached.cache_clear()


@pytest.fixture
def store(tmp_path) -> Iterator[SqliteStore]:
    sqlite_store = SqliteStore(str(tmp_path / "state_audit.db"))
    sqlite_store.executescript(SCHEMA)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def user(store: SqliteStore) -> Actor:
    user_id = store.insert("users", {"name": "admin"})
    return Actor(id=user_id, name="admin")


class FrozenClock:
    """Replacement for utc_now() that returns whatever ``now`` is set to."""

    def __init__(self) -> None:
        self.now = datetime(2000, 1, 3, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FrozenClock:
    frozen = FrozenClock()
    monkeypatch.setattr("state_audit.audit.trail.utc_now", frozen)
    return frozen
