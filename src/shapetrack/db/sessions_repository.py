"""Repository functions for session tables.

Covers learning_sessions, assessment_sessions (scored Q&A rows) and
active_sessions (assessment markers). Every function takes an open
connection: callers own the transaction, usually through Database.run,
so several reads and a write can be combined atomically.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, Literal

import structlog

from shapetrack.errors import SessionAlreadyActiveError

logger = structlog.get_logger(__name__)

MarkerStatus = Literal["active", "completed", "cancelled"]

CORRECT_LABEL = "Correct"


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class LearningSessionRecord:
    """One explanation given to a student."""

    id: int
    student_id: str
    shape: str
    explanation: str
    timestamp: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> LearningSessionRecord:
        return cls(
            id=row["id"],
            student_id=row["student_id"],
            shape=row["shape"],
            explanation=row["explanation"],
            timestamp=row["timestamp"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnswerRecord:
    """One scored assessment question."""

    id: int
    student_id: str
    question: str
    answer: str
    assessment: str
    timestamp: str

    @property
    def is_correct(self) -> bool:
        return self.assessment == CORRECT_LABEL

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> AnswerRecord:
        return cls(
            id=row["id"],
            student_id=row["student_id"],
            question=row["question"],
            answer=row["answer"],
            assessment=row["assessment"],
            timestamp=row["timestamp"],
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["is_correct"] = self.is_correct
        return data


@dataclass
class MarkerRecord:
    """An assessment marker (active or historical)."""

    id: int
    student_id: str
    status: MarkerStatus
    started_at: str
    ended_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> MarkerRecord:
        return cls(
            id=row["id"],
            student_id=row["student_id"],
            status=row["status"],
            started_at=row["started_at"],
            ended_at=row["ended_at"],
        )


# =============================================================================
# LEARNING SESSIONS
# =============================================================================


def insert_learning_session(
    conn: sqlite3.Connection,
    student_id: str,
    shape: str,
    explanation: str,
    timestamp: str,
) -> LearningSessionRecord:
    cursor = conn.execute(
        """
        INSERT INTO learning_sessions (student_id, shape, explanation, timestamp)
        VALUES (?, ?, ?, ?)
        """,
        (student_id, shape, explanation, timestamp),
    )
    logger.debug("learning_sessions.inserted", student_id=student_id, shape=shape)
    return LearningSessionRecord(
        id=cursor.lastrowid,
        student_id=student_id,
        shape=shape,
        explanation=explanation,
        timestamp=timestamp,
    )


def latest_learning_timestamp(
    conn: sqlite3.Connection, student_id: str, day: str | None = None
) -> str | None:
    """Most recent learning timestamp, optionally restricted to one date."""
    query = "SELECT MAX(timestamp) AS ts FROM learning_sessions WHERE student_id = ?"
    params: list[Any] = [student_id]
    if day is not None:
        query += " AND DATE(timestamp) = ?"
        params.append(day)
    return conn.execute(query, params).fetchone()["ts"]


# =============================================================================
# ASSESSMENT ANSWERS
# =============================================================================


def insert_answer(
    conn: sqlite3.Connection,
    student_id: str,
    question: str,
    answer: str,
    assessment: str,
    timestamp: str,
) -> AnswerRecord:
    cursor = conn.execute(
        """
        INSERT INTO assessment_sessions (student_id, question, answer, assessment, timestamp)
        VALUES (?, ?, ?, ?, ?)
        """,
        (student_id, question, answer, assessment, timestamp),
    )
    logger.debug("assessment_sessions.inserted", student_id=student_id, assessment=assessment)
    return AnswerRecord(
        id=cursor.lastrowid,
        student_id=student_id,
        question=question,
        answer=answer,
        assessment=assessment,
        timestamp=timestamp,
    )


def select_answers(
    conn: sqlite3.Connection, student_id: str, day: str | None = None
) -> list[AnswerRecord]:
    """Answers for a student, most recent first."""
    query = """
        SELECT id, student_id, question, answer, assessment, timestamp
        FROM assessment_sessions
        WHERE student_id = ?
    """
    params: list[Any] = [student_id]
    if day is not None:
        query += " AND DATE(timestamp) = ?"
        params.append(day)
    query += " ORDER BY timestamp DESC, id DESC"
    return [AnswerRecord.from_row(row) for row in conn.execute(query, params).fetchall()]


def has_answers_on(conn: sqlite3.Connection, student_id: str, day: str) -> bool:
    """True if answers recorded outside any closed marker exist on `day`.

    Answers written while a marker was open belong to that assessment and
    count only through its completion.
    """
    row = conn.execute(
        """
        SELECT 1 FROM assessment_sessions a
        WHERE a.student_id = ? AND DATE(a.timestamp) = ?
          AND NOT EXISTS (
              SELECT 1 FROM active_sessions m
              WHERE m.student_id = a.student_id
                AND m.status != 'active'
                AND a.timestamp BETWEEN m.started_at AND m.ended_at
          )
        LIMIT 1
        """,
        (student_id, day),
    ).fetchone()
    return row is not None


def latest_answer_timestamp(conn: sqlite3.Connection, student_id: str) -> str | None:
    row = conn.execute(
        "SELECT MAX(timestamp) AS ts FROM assessment_sessions WHERE student_id = ?",
        (student_id,),
    ).fetchone()
    return row["ts"]


# =============================================================================
# ASSESSMENT MARKERS
# =============================================================================


def find_active_marker(conn: sqlite3.Connection, student_id: str) -> MarkerRecord | None:
    row = conn.execute(
        """
        SELECT * FROM active_sessions
        WHERE student_id = ? AND status = 'active'
        """,
        (student_id,),
    ).fetchone()
    return MarkerRecord.from_row(row) if row else None


def find_completed_marker_on(
    conn: sqlite3.Connection, student_id: str, day: str
) -> MarkerRecord | None:
    """Latest marker completed on the given date, if any."""
    row = conn.execute(
        """
        SELECT * FROM active_sessions
        WHERE student_id = ? AND status = 'completed' AND DATE(ended_at) = ?
        ORDER BY ended_at DESC, id DESC
        LIMIT 1
        """,
        (student_id, day),
    ).fetchone()
    return MarkerRecord.from_row(row) if row else None


def latest_completed_at(conn: sqlite3.Connection, student_id: str) -> str | None:
    row = conn.execute(
        """
        SELECT MAX(ended_at) AS ts FROM active_sessions
        WHERE student_id = ? AND status = 'completed'
        """,
        (student_id,),
    ).fetchone()
    return row["ts"]


def insert_active_marker(
    conn: sqlite3.Connection, student_id: str, started_at: str
) -> MarkerRecord:
    """Insert an active marker.

    Raises:
        SessionAlreadyActiveError: If the one-active-per-student index rejects it
    """
    try:
        cursor = conn.execute(
            """
            INSERT INTO active_sessions (student_id, status, started_at)
            VALUES (?, 'active', ?)
            """,
            (student_id, started_at),
        )
    except sqlite3.IntegrityError as e:
        raise SessionAlreadyActiveError(student_id) from e

    return MarkerRecord(
        id=cursor.lastrowid,
        student_id=student_id,
        status="active",
        started_at=started_at,
    )


def close_marker(
    conn: sqlite3.Connection,
    marker: MarkerRecord,
    status: MarkerStatus,
    ended_at: str,
) -> MarkerRecord:
    """Move an active marker to a terminal status."""
    conn.execute(
        """
        UPDATE active_sessions SET status = ?, ended_at = ?
        WHERE id = ? AND status = 'active'
        """,
        (status, ended_at, marker.id),
    )
    return MarkerRecord(
        id=marker.id,
        student_id=marker.student_id,
        status=status,
        started_at=marker.started_at,
        ended_at=ended_at,
    )


def find_current_marker(conn: sqlite3.Connection) -> sqlite3.Row | None:
    """Most recently started active marker across all students, with names."""
    return conn.execute(
        """
        SELECT a.id, a.student_id, a.started_at, s.first_name, s.last_name
        FROM active_sessions a
        JOIN students s ON a.student_id = s.student_id
        WHERE a.status = 'active'
        ORDER BY a.started_at DESC, a.id DESC
        LIMIT 1
        """
    ).fetchone()
