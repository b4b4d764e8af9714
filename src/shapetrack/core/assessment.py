"""Assessment session lifecycle.

Responsibilities:
- Gate the start of an assessment: one per student per calendar day, and
  never two in progress at once
- Close assessments explicitly (complete or stop)
- Report per-student status and the globally current assessment
- Store scored answers coming from the assessment feed

State machine per student:

    Idle --start--> Active --complete--> CompletedToday --(next date)--> Idle
                      |
                      +----stop----> Idle

A student counts as assessed on a date when a marker was completed that
date, or when answers exist for that date while no marker is active and
outside every closed marker's window (answers recorded by a feed that
never opened a marker). Answers given during a stopped assessment do not
count.

The one-active-marker rule is enforced by a partial unique index in the
schema; start_assessment also runs its checks and insert inside a single
BEGIN IMMEDIATE transaction so concurrent starts are serialized.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from shapetrack.db.database import Database
from shapetrack.db.sessions_repository import (
    CORRECT_LABEL,
    AnswerRecord,
    MarkerRecord,
    MarkerStatus,
    close_marker,
    find_active_marker,
    find_completed_marker_on,
    find_current_marker,
    has_answers_on,
    insert_active_marker,
    insert_answer,
    latest_answer_timestamp,
    latest_completed_at,
    latest_learning_timestamp,
    select_answers,
)
from shapetrack.db.students_repository import student_exists
from shapetrack.errors import (
    AlreadyAssessedTodayError,
    ConflictError,
    NotFoundError,
    SessionAlreadyActiveError,
)
from shapetrack.utils.time_utils import Clock, calendar_date, format_timestamp, utc_now
from shapetrack.utils.validators import parse_date, require_text

logger = structlog.get_logger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class AssessmentSession:
    """Descriptor of one assessment marker."""

    session_id: int
    student_id: str
    started_at: str
    status: MarkerStatus
    ended_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_marker(cls, marker: MarkerRecord) -> AssessmentSession:
        return cls(
            session_id=marker.id,
            student_id=marker.student_id,
            started_at=marker.started_at,
            status=marker.status,
            ended_at=marker.ended_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "student_id": self.student_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "status": self.status,
            "is_active": self.is_active,
        }


@dataclass
class AssessmentStatus:
    """Assessment state of one student for the current date."""

    student_id: str
    date: str
    assessed_today: bool
    learned_today: bool
    current_session: AssessmentSession | None
    last_assessment: str | None
    last_learning: str | None


@dataclass
class CurrentAssessment:
    """The most recently started active assessment across all students."""

    session_id: int
    student_id: str
    first_name: str
    last_name: str
    started_at: str


# =============================================================================
# MANAGER
# =============================================================================


def _normalize_assessment(label: str) -> str:
    """Canonicalize the correct label; other labels are stored as given."""
    if label.lower() == CORRECT_LABEL.lower():
        return CORRECT_LABEL
    return label


class AssessmentManager:
    """Gatekeeper for assessment state transitions.

    Holds no per-student state of its own; every call reads and writes the
    store, so one instance can serve concurrent requests.
    """

    def __init__(self, db: Database, clock: Clock = utc_now):
        self._db = db
        self._clock = clock

    def _ensure_student(self, conn: sqlite3.Connection, student_id: str) -> None:
        if not student_exists(conn, student_id):
            raise NotFoundError(f"Student '{student_id}' not found")

    def _assessed_on(
        self,
        conn: sqlite3.Connection,
        student_id: str,
        day: str,
        active: MarkerRecord | None,
    ) -> bool:
        if find_completed_marker_on(conn, student_id, day) is not None:
            return True
        return active is None and has_answers_on(conn, student_id, day)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def start_assessment(self, student_id: str) -> AssessmentSession:
        """Open an assessment for a student.

        Args:
            student_id: Registered student

        Returns:
            The new active session

        Raises:
            ValidationError: Empty student_id
            NotFoundError: Unknown student
            AlreadyAssessedTodayError: Assessment already completed today
            SessionAlreadyActiveError: An assessment is already in progress
        """
        student_id = require_text(student_id, "studentId")
        now = self._clock()
        day = calendar_date(now)
        started_at = format_timestamp(now)

        def _start(conn: sqlite3.Connection) -> MarkerRecord:
            self._ensure_student(conn, student_id)
            active = find_active_marker(conn, student_id)
            if self._assessed_on(conn, student_id, day, active):
                raise AlreadyAssessedTodayError(student_id, day)
            if active is not None:
                raise SessionAlreadyActiveError(student_id)
            return insert_active_marker(conn, student_id, started_at)

        try:
            marker = self._db.run(_start, immediate=True)
        except ConflictError as e:
            logger.info("assessment.start_rejected", student_id=student_id, reason=e.code)
            raise

        logger.info("assessment.started", student_id=student_id, session_id=marker.id)
        return AssessmentSession.from_marker(marker)

    def _close(self, student_id: str, status: MarkerStatus) -> AssessmentSession:
        student_id = require_text(student_id, "studentId")
        ended_at = format_timestamp(self._clock())

        def _end(conn: sqlite3.Connection) -> MarkerRecord:
            self._ensure_student(conn, student_id)
            active = find_active_marker(conn, student_id)
            if active is None:
                raise NotFoundError(f"No active assessment for student '{student_id}'")
            return close_marker(conn, active, status, ended_at)

        marker = self._db.run(_end, immediate=True)
        logger.info(
            "assessment.closed",
            student_id=student_id,
            session_id=marker.id,
            status=status,
        )
        return AssessmentSession.from_marker(marker)

    def complete_assessment(self, student_id: str) -> AssessmentSession:
        """Finish the active assessment. The student counts as assessed today.

        Raises:
            NotFoundError: Unknown student or no assessment in progress
        """
        return self._close(student_id, "completed")

    def stop_assessment(self, student_id: str) -> AssessmentSession:
        """Abandon the active assessment without counting it as done.

        Raises:
            NotFoundError: Unknown student or no assessment in progress
        """
        return self._close(student_id, "cancelled")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_status(self, student_id: str) -> AssessmentStatus:
        """Whether the student was assessed today and what is in progress."""
        student_id = require_text(student_id, "studentId")
        day = calendar_date(self._clock())

        def _read(conn: sqlite3.Connection) -> AssessmentStatus:
            active = find_active_marker(conn, student_id)
            completed = latest_completed_at(conn, student_id)
            answered = latest_answer_timestamp(conn, student_id)
            candidates = [ts for ts in (completed, answered) if ts]
            return AssessmentStatus(
                student_id=student_id,
                date=day,
                assessed_today=self._assessed_on(conn, student_id, day, active),
                learned_today=latest_learning_timestamp(conn, student_id, day) is not None,
                current_session=AssessmentSession.from_marker(active) if active else None,
                last_assessment=max(candidates) if candidates else None,
                last_learning=latest_learning_timestamp(conn, student_id),
            )

        return self._db.run(_read)

    def get_current(self) -> CurrentAssessment | None:
        """The most recently started active assessment, system-wide."""
        row = self._db.run(find_current_marker)
        if row is None:
            return None
        return CurrentAssessment(
            session_id=row["id"],
            student_id=row["student_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            started_at=row["started_at"],
        )

    # -------------------------------------------------------------------------
    # Assessment feed
    # -------------------------------------------------------------------------

    def record_answer(
        self,
        student_id: str,
        question: str,
        answer: str | None,
        assessment: str,
        timestamp: datetime | None = None,
    ) -> AnswerRecord:
        """Store one scored question for a student.

        Scoring happens upstream; `assessment` is "Correct" or any other
        label for a wrong answer.
        """
        student_id = require_text(student_id, "studentId")
        question = require_text(question, "question")
        assessment = _normalize_assessment(require_text(assessment, "assessment"))
        stamp = format_timestamp(timestamp or self._clock())

        def _insert(conn: sqlite3.Connection) -> AnswerRecord:
            self._ensure_student(conn, student_id)
            return insert_answer(conn, student_id, question, answer or "", assessment, stamp)

        record = self._db.run(_insert)
        logger.info(
            "assessment.answer_recorded",
            student_id=student_id,
            answer_id=record.id,
            correct=record.is_correct,
        )
        return record

    def list_answers(self, student_id: str, date: str | None = None) -> list[AnswerRecord]:
        """Raw answers, most recent first, optionally for one YYYY-MM-DD date."""
        student_id = require_text(student_id, "studentId")
        day = parse_date(date) if date else None
        return self._db.run(lambda conn: select_answers(conn, student_id, day))
