"""Tests for the assessment lifecycle."""

import threading
from datetime import datetime, timezone

import pytest

from shapetrack.core.assessment import AssessmentManager
from shapetrack.core.students import record_learning_session
from shapetrack.errors import (
    AlreadyAssessedTodayError,
    NotFoundError,
    SessionAlreadyActiveError,
    ValidationError,
)


@pytest.fixture
def student(make_student):
    return make_student()


class TestStartAssessment:
    """Tests for start_assessment."""

    def test_start(self, manager, student):
        session = manager.start_assessment("STU1")

        assert session.session_id > 0
        assert session.student_id == "STU1"
        assert session.status == "active"
        assert session.is_active
        assert session.started_at == "2024-03-15 10:30:00"

    def test_unknown_student(self, manager):
        with pytest.raises(NotFoundError):
            manager.start_assessment("NOPE")

    def test_empty_student_id(self, manager):
        with pytest.raises(ValidationError):
            manager.start_assessment("  ")

    def test_second_start_while_active(self, manager, student):
        """A student cannot have two assessments in progress."""
        manager.start_assessment("STU1")

        with pytest.raises(SessionAlreadyActiveError) as exc_info:
            manager.start_assessment("STU1")
        assert exc_info.value.code == "session_already_active"

    def test_start_after_complete_same_day(self, manager, student, clock):
        """A completed assessment blocks further starts until the next date."""
        manager.start_assessment("STU1")
        clock.advance(minutes=20)
        manager.complete_assessment("STU1")

        with pytest.raises(AlreadyAssessedTodayError) as exc_info:
            manager.start_assessment("STU1")
        assert exc_info.value.date == "2024-03-15"

    def test_start_next_day(self, manager, student, clock):
        manager.start_assessment("STU1")
        manager.complete_assessment("STU1")
        clock.advance(days=1)

        session = manager.start_assessment("STU1")

        assert session.started_at == "2024-03-16 10:30:00"

    def test_start_after_midnight_utc(self, manager, student, clock):
        """The day boundary is the UTC date."""
        clock.now = datetime(2024, 3, 15, 23, 59, 0, tzinfo=timezone.utc)
        manager.start_assessment("STU1")
        manager.complete_assessment("STU1")

        clock.now = datetime(2024, 3, 16, 0, 1, 0, tzinfo=timezone.utc)
        assert manager.start_assessment("STU1").is_active

    def test_start_after_stop_same_day(self, manager, student):
        """A stopped assessment does not count as done."""
        manager.start_assessment("STU1")
        manager.stop_assessment("STU1")

        assert manager.start_assessment("STU1").is_active

    def test_start_after_stop_with_answers_same_day(self, manager, student, clock):
        """Answers given during a stopped assessment do not block a restart."""
        manager.start_assessment("STU1")
        clock.advance(minutes=2)
        manager.record_answer("STU1", "Which shape?", "circle", "Correct")
        clock.advance(minutes=2)
        manager.stop_assessment("STU1")
        clock.advance(minutes=5)

        assert manager.get_status("STU1").assessed_today is False
        assert manager.start_assessment("STU1").is_active

    def test_feed_answers_after_stop_still_count(self, manager, student, clock):
        """Answers recorded after the stopped window count as assessed."""
        manager.start_assessment("STU1")
        manager.stop_assessment("STU1")
        clock.advance(minutes=30)
        manager.record_answer("STU1", "Which shape?", "circle", "Correct")

        with pytest.raises(AlreadyAssessedTodayError):
            manager.start_assessment("STU1")

    def test_answers_without_marker_count_as_assessed(self, manager, student):
        """Answers fed in without a marker still block a new start that day."""
        manager.record_answer("STU1", "Which shape?", "circle", "Correct")

        with pytest.raises(AlreadyAssessedTodayError):
            manager.start_assessment("STU1")

    def test_answers_from_previous_day_do_not_block(self, manager, student, clock):
        manager.record_answer(
            "STU1",
            "Which shape?",
            "circle",
            "Correct",
            timestamp=datetime(2024, 3, 14, 15, 0, tzinfo=timezone.utc),
        )
        assert manager.start_assessment("STU1").is_active

    def test_students_are_independent(self, manager, make_student):
        make_student("STU1")
        make_student("STU2", first_name="Ben")

        manager.start_assessment("STU1")
        assert manager.start_assessment("STU2").student_id == "STU2"

    def test_concurrent_starts_create_one_session(self, db, clock, student):
        """Racing starts for one student leave exactly one active marker."""
        workers = 6
        barrier = threading.Barrier(workers)
        outcomes = []
        lock = threading.Lock()

        def _start():
            manager = AssessmentManager(db, clock)
            barrier.wait(timeout=5)
            try:
                manager.start_assessment("STU1")
                result = "started"
            except SessionAlreadyActiveError:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=_start) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert outcomes.count("started") == 1
        assert outcomes.count("rejected") == workers - 1
        row = db.fetch_one(
            "SELECT COUNT(*) AS n FROM active_sessions WHERE student_id = 'STU1' AND status = 'active'"
        )
        assert row["n"] == 1


class TestCloseAssessment:
    """Tests for complete_assessment and stop_assessment."""

    def test_complete(self, manager, student, clock):
        started = manager.start_assessment("STU1")
        clock.advance(minutes=15)

        session = manager.complete_assessment("STU1")

        assert session.session_id == started.session_id
        assert session.status == "completed"
        assert session.ended_at == "2024-03-15 10:45:00"
        assert not session.is_active

    def test_stop(self, manager, student):
        manager.start_assessment("STU1")
        session = manager.stop_assessment("STU1")
        assert session.status == "cancelled"

    def test_complete_without_active(self, manager, student):
        with pytest.raises(NotFoundError, match="No active assessment"):
            manager.complete_assessment("STU1")

    def test_stop_unknown_student(self, manager):
        with pytest.raises(NotFoundError):
            manager.stop_assessment("NOPE")


class TestGetStatus:
    """Tests for get_status."""

    def test_idle_student(self, manager, student):
        status = manager.get_status("STU1")

        assert status.date == "2024-03-15"
        assert status.assessed_today is False
        assert status.learned_today is False
        assert status.current_session is None
        assert status.last_assessment is None
        assert status.last_learning is None

    def test_in_progress(self, manager, student):
        started = manager.start_assessment("STU1")
        status = manager.get_status("STU1")

        assert status.assessed_today is False
        assert status.current_session.session_id == started.session_id

    def test_answers_during_active_session_do_not_mark_assessed(self, manager, student):
        manager.start_assessment("STU1")
        manager.record_answer("STU1", "Which shape?", "circle", "Correct")

        assert manager.get_status("STU1").assessed_today is False

    def test_completed(self, manager, student, clock):
        manager.start_assessment("STU1")
        clock.advance(minutes=5)
        manager.complete_assessment("STU1")

        status = manager.get_status("STU1")

        assert status.assessed_today is True
        assert status.current_session is None
        assert status.last_assessment == "2024-03-15 10:35:00"

    def test_previous_day_not_today(self, manager, student, clock):
        manager.start_assessment("STU1")
        manager.complete_assessment("STU1")
        clock.advance(days=1)

        status = manager.get_status("STU1")

        assert status.assessed_today is False
        assert status.last_assessment == "2024-03-15 10:30:00"

    def test_learned_today(self, db, manager, student, clock):
        record_learning_session(db, "STU1", "circle", "Round", clock=clock)

        status = manager.get_status("STU1")

        assert status.learned_today is True
        assert status.last_learning == "2024-03-15 10:30:00"


class TestGetCurrent:
    """Tests for get_current."""

    def test_none(self, manager, student):
        assert manager.get_current() is None

    def test_most_recent_start_wins(self, manager, make_student, clock):
        make_student("STU1")
        make_student("STU2", first_name="Ben", last_name="Ray")
        manager.start_assessment("STU1")
        clock.advance(minutes=1)
        manager.start_assessment("STU2")

        current = manager.get_current()

        assert current.student_id == "STU2"
        assert current.first_name == "Ben"
        assert current.last_name == "Ray"
        assert current.started_at == "2024-03-15 10:31:00"

    def test_cleared_after_complete(self, manager, student):
        manager.start_assessment("STU1")
        manager.complete_assessment("STU1")
        assert manager.get_current() is None


class TestAnswers:
    """Tests for record_answer and list_answers."""

    def test_correct_label_normalized(self, manager, student):
        record = manager.record_answer("STU1", "Which shape?", "circle", "correct")

        assert record.assessment == "Correct"
        assert record.is_correct

    def test_other_labels_kept(self, manager, student):
        record = manager.record_answer("STU1", "Which shape?", "square", "Incorrect")

        assert record.assessment == "Incorrect"
        assert not record.is_correct

    def test_missing_answer_stored_empty(self, manager, student):
        assert manager.record_answer("STU1", "Which shape?", None, "Incorrect").answer == ""

    def test_unknown_student(self, manager):
        with pytest.raises(NotFoundError):
            manager.record_answer("NOPE", "Which shape?", "circle", "Correct")

    def test_question_required(self, manager, student):
        with pytest.raises(ValidationError):
            manager.record_answer("STU1", "", "circle", "Correct")

    def test_list_newest_first(self, manager, student, clock):
        manager.record_answer("STU1", "Q1", "a", "Correct")
        clock.advance(minutes=1)
        manager.record_answer("STU1", "Q2", "b", "Incorrect")

        answers = manager.list_answers("STU1")

        assert [a.question for a in answers] == ["Q2", "Q1"]

    def test_list_by_date(self, manager, student, clock):
        manager.record_answer("STU1", "Q1", "a", "Correct")
        clock.advance(days=1)
        manager.record_answer("STU1", "Q2", "b", "Correct")

        answers = manager.list_answers("STU1", date="2024-03-15")

        assert [a.question for a in answers] == ["Q1"]

    def test_list_bad_date(self, manager, student):
        with pytest.raises(ValidationError):
            manager.list_answers("STU1", date="15-03-2024")
