"""Shared fixtures.

Every test gets its own SQLite file under tmp_path and a controllable
clock, so nothing touches ./data and "today" is deterministic.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shapetrack.core.assessment import AssessmentManager
from shapetrack.core.students import register_student
from shapetrack.db.database import Database

FIXED_NOW = datetime(2024, 3, 15, 10, 30, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock pinned to 2024-03-15 10:30 UTC."""
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "db" / "shapetrack_test.db"


@pytest.fixture
def db(db_path):
    """Open database with schema, closed after the test."""
    database = Database(db_path, pool_size=4, pool_timeout=5.0, busy_timeout=5.0)
    database.open()
    yield database
    database.close()


@pytest.fixture
def manager(db, clock):
    return AssessmentManager(db, clock)


@pytest.fixture
def make_student(db, clock):
    """Factory registering students with sensible defaults."""

    def _make(student_id: str = "STU1", first_name: str = "Ana", last_name: str = "Lee", **extra):
        return register_student(
            db,
            student_id=student_id,
            first_name=first_name,
            last_name=last_name,
            clock=clock,
            **extra,
        )

    return _make
