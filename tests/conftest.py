"""Shared fixtures: every test gets its own database file."""

import pytest

from tasktrack.db import TrackerDatabase
from tasktrack.tools import ToolRegistry


@pytest.fixture
def db(tmp_path):
    database = TrackerDatabase(
        str(tmp_path / "tasks.db"),
        busy_timeout=0.5,
        retry_attempts=1,
        retry_backoff=0.01,
    )
    yield database
    database.close()


@pytest.fixture
def memory_db():
    database = TrackerDatabase(":memory:")
    yield database
    database.close()


@pytest.fixture
def project(db):
    return db.create_project("backend", "/srv/backend")


@pytest.fixture
def registry(db):
    return ToolRegistry(db)


@pytest.fixture
def fixed_ids(db, monkeypatch):
    """Make ``db`` hand out the given IDs in order."""

    def use(*ids):
        pending = iter(ids)
        monkeypatch.setattr(db, "_generate_id", lambda: next(pending))

    return use
