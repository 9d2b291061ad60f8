"""Shared test fixtures and configuration.

Sets up environment variables before any choreledger import so the config
singleton loads predictable values, and provides temp-file databases and a
controllable clock for the ledger.
"""

import os
import tempfile

# Patch env vars BEFORE any choreledger imports
os.environ.setdefault(
    "DATABASE_PATH", os.path.join(tempfile.mkdtemp(prefix="choreledger-"), "chores.db"),
)
os.environ.setdefault("DB_TIMEOUT_SECONDS", "10")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Deterministic clock; every call advances by one second."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 5, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_chores.db")


@pytest.fixture
def job_db(tmp_db_path):
    """Return a JobDB instance backed by a temp file."""
    from choreledger.data.db import JobDB
    return JobDB(db_path=tmp_db_path)


@pytest.fixture
def completion_db(tmp_db_path, job_db):
    """Return a CompletionDB sharing the job database file."""
    from choreledger.data.db import CompletionDB
    return CompletionDB(db_path=tmp_db_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(completion_db, clock):
    from choreledger.core.ledger import CompletionLedger
    return CompletionLedger(completion_db, clock=clock)


@pytest.fixture
def service(job_db, ledger):
    from choreledger.core.job_service import JobService
    return JobService(job_db, ledger)
