"""Tests for the students repository."""

import pytest

from shapetrack.db.sessions_repository import insert_answer, insert_learning_session
from shapetrack.db.students_repository import (
    delete_student,
    get_student,
    insert_student,
    update_student,
)
from shapetrack.errors import DuplicateStudentError

CREATED = "2024-03-15 10:30:00"


@pytest.fixture
def stored(db):
    return insert_student(
        db,
        student_id="STU1",
        first_name="Ana",
        last_name="Lee",
        created_at=CREATED,
        email="ana@example.com",
        learning_goals="Recognize circles",
    )


class TestInsertStudent:
    """Tests for insert_student."""

    def test_insert_returns_record(self, stored):
        """The stored record is returned with timestamps."""
        assert stored.student_id == "STU1"
        assert stored.full_name == "Ana Lee"
        assert stored.email == "ana@example.com"
        assert stored.phone is None
        assert stored.created_at == CREATED
        assert stored.updated_at == CREATED

    def test_duplicate_student_id(self, db, stored):
        """Registering the same student_id twice raises DuplicateStudentError."""
        with pytest.raises(DuplicateStudentError) as exc_info:
            insert_student(db, "STU1", "Other", "Person", created_at=CREATED)
        assert exc_info.value.student_id == "STU1"
        assert exc_info.value.code == "duplicate_student"


class TestGetStudent:
    """Tests for get_student."""

    def test_found(self, db, stored):
        assert get_student(db, "STU1") == stored

    def test_missing(self, db):
        assert get_student(db, "NOPE") is None

    def test_to_dict(self, stored):
        data = stored.to_dict()
        assert data["student_id"] == "STU1"
        assert data["learning_goals"] == "Recognize circles"


class TestUpdateStudent:
    """Tests for update_student."""

    def test_partial_update_keeps_other_fields(self, db, stored):
        """Only supplied fields change."""
        record = update_student(db, "STU1", {"phone": "555-0100"}, "2024-03-16 08:00:00")

        assert record.phone == "555-0100"
        assert record.email == "ana@example.com"
        assert record.first_name == "Ana"
        assert record.updated_at == "2024-03-16 08:00:00"
        assert record.created_at == CREATED

    def test_none_keeps_value(self, db, stored):
        """A None value does not clear the column."""
        record = update_student(db, "STU1", {"email": None}, "2024-03-16 08:00:00")
        assert record.email == "ana@example.com"

    def test_missing_student(self, db):
        assert update_student(db, "NOPE", {"phone": "1"}, CREATED) is None


class TestDeleteStudent:
    """Tests for delete_student."""

    def test_delete_cascades(self, db, stored):
        """Sessions, answers and markers go with the student."""

        def _populate(conn):
            insert_learning_session(conn, "STU1", "circle", "round", CREATED)
            insert_answer(conn, "STU1", "Which?", "circle", "Correct", CREATED)
            conn.execute(
                "INSERT INTO active_sessions (student_id, status, started_at) "
                "VALUES ('STU1', 'active', ?)",
                (CREATED,),
            )

        db.run(_populate)

        assert delete_student(db, "STU1") is True

        for table in ("learning_sessions", "assessment_sessions", "active_sessions"):
            row = db.fetch_one(f"SELECT COUNT(*) AS n FROM {table}")
            assert row["n"] == 0, table

    def test_delete_missing(self, db):
        assert delete_student(db, "NOPE") is False
