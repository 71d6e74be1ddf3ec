"""Pytest fixtures shared across the test suite."""

from datetime import datetime, timezone

import pytest

from library_mirror.core.database import Database
from library_mirror.core.snapshot import FileSnapshotStore, SnapshotPublisher

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / "data" / "library.db"))


@pytest.fixture
def snapshot_store(tmp_path):
    return FileSnapshotStore(str(tmp_path / "web_data"))


@pytest.fixture
def publisher(db, snapshot_store):
    return SnapshotPublisher(db, snapshot_store)
