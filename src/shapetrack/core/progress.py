"""Progress aggregation.

Responsibilities:
- Per learning session: questions asked and answered correctly on the
  same calendar date, and the resulting accuracy
- Per student: average score over all scored answers and a status label
- Per shape: session counts and progress for every configured shape
- Student listing and detail views for the dashboard

Nothing here writes to the store and nothing is cached: every call
recomputes from learning_sessions and assessment_sessions.

Numbers:
- percentages round half up to an integer
- an empty denominator yields 0
- a student with no answers has average_score 0 (status needs_attention)

Partial failure: if the same-day answer counts cannot be read, sessions
are still returned with zero counts and a warning is logged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

import structlog

from shapetrack.config.app_config import DashboardConfig
from shapetrack.core.students import get_student_or_raise
from shapetrack.db.database import Database
from shapetrack.db.sessions_repository import CORRECT_LABEL
from shapetrack.db.students_repository import StudentRecord
from shapetrack.errors import ShapetrackError, ValidationError

logger = structlog.get_logger(__name__)

StatusLabel = Literal["excellent", "active", "needs_attention"]

SORT_ORDERS = ("recent", "name", "score", "sessions")

# Whitelisted ORDER BY clauses; "score" is sorted after aggregation
_ORDER_BY = {
    "recent": "s.created_at DESC, s.id DESC",
    "name": "s.last_name COLLATE NOCASE, s.first_name COLLATE NOCASE, s.id",
    "score": "s.created_at DESC, s.id DESC",
    "sessions": "total_sessions DESC, s.created_at DESC, s.id DESC",
}


# =============================================================================
# ARITHMETIC
# =============================================================================


def percentage(part: int, total: int) -> int:
    """part/total as an integer percentage, rounded half up. 0 if total is 0."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


def mean_rounded(values: list[int]) -> int:
    """Mean of non-negative integers rounded half up. 0 for an empty list."""
    if not values:
        return 0
    return (2 * sum(values) + len(values)) // (2 * len(values))


def classify_status(
    average_score: int,
    excellent_threshold: int = 90,
    active_threshold: int = 70,
) -> StatusLabel:
    if average_score >= excellent_threshold:
        return "excellent"
    if average_score >= active_threshold:
        return "active"
    return "needs_attention"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class SessionSummary:
    """A learning session with the same-day assessment results."""

    id: int
    student_id: str
    shape: str
    explanation: str
    timestamp: str
    questions_asked: int = 0
    correct_answers: int = 0

    @property
    def accuracy(self) -> int:
        return percentage(self.correct_answers, self.questions_asked)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["accuracy"] = self.accuracy
        return data


@dataclass
class ShapeProgress:
    """Aggregate for one shape."""

    shape: str
    sessions: int = 0
    progress: int = 0  # mean of per-session accuracy
    accuracy: int = 0  # pooled correct / asked

    def to_dict(self) -> dict[str, Any]:
        return {"sessions": self.sessions, "progress": self.progress, "accuracy": self.accuracy}


@dataclass
class StudentStatus:
    """Average score and status label for one student."""

    student_id: str
    total_answers: int
    correct_answers: int
    average_score: int
    status: StatusLabel


@dataclass
class StudentOverview:
    """One row of the student list."""

    student: StudentRecord
    total_sessions: int
    average_score: int
    last_session_date: str | None
    status: StatusLabel


@dataclass
class StudentDetail:
    """Everything the student detail page shows."""

    student: StudentRecord
    total_sessions: int
    average_score: int
    status: StatusLabel
    last_session_date: str | None
    shapes_progress: dict[str, ShapeProgress] = field(default_factory=dict)
    recent_sessions: list[SessionSummary] = field(default_factory=list)


# =============================================================================
# SUB-AGGREGATES
# =============================================================================


def _daily_answer_counts(
    db: Database, student_id: str | None = None
) -> dict[tuple[str, str], tuple[int, int]]:
    """(student_id, date) -> (asked, correct). Empty if the read fails."""
    query = """
        SELECT student_id, DATE(timestamp) AS day,
               COUNT(*) AS asked,
               SUM(CASE WHEN assessment = ? THEN 1 ELSE 0 END) AS correct
        FROM assessment_sessions
    """
    params: list[Any] = [CORRECT_LABEL]
    if student_id is not None:
        query += " WHERE student_id = ?"
        params.append(student_id)
    query += " GROUP BY student_id, DATE(timestamp)"

    try:
        rows = db.fetch_all(query, params)
    except ShapetrackError as e:
        logger.warning("progress.daily_counts_unavailable", student_id=student_id, error=str(e))
        return {}

    return {(row["student_id"], row["day"]): (row["asked"], row["correct"] or 0) for row in rows}


def _session_summaries(
    db: Database,
    student_id: str | None = None,
    shape: str | None = None,
    limit: int | None = None,
) -> list[SessionSummary]:
    query = """
        SELECT id, student_id, shape, explanation, timestamp, DATE(timestamp) AS day
        FROM learning_sessions
    """
    conditions: list[str] = []
    params: list[Any] = []
    if student_id is not None:
        conditions.append("student_id = ?")
        params.append(student_id)
    if shape is not None:
        conditions.append("shape = ?")
        params.append(shape)
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY timestamp DESC, id DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    rows = db.fetch_all(query, params)
    if not rows:
        return []

    counts = _daily_answer_counts(db, student_id)
    summaries = []
    for row in rows:
        asked, correct = counts.get((row["student_id"], row["day"]), (0, 0))
        summaries.append(
            SessionSummary(
                id=row["id"],
                student_id=row["student_id"],
                shape=row["shape"],
                explanation=row["explanation"],
                timestamp=row["timestamp"],
                questions_asked=asked,
                correct_answers=correct,
            )
        )
    return summaries


# =============================================================================
# PUBLIC API
# =============================================================================


def compute_student_summary(
    db: Database, student_id: str, limit: int | None = None
) -> list[SessionSummary]:
    """Learning sessions of a student with same-day results, newest first."""
    return _session_summaries(db, student_id=student_id, limit=limit)


def list_learning_sessions(
    db: Database,
    student_id: str | None = None,
    shape: str | None = None,
    limit: int = 50,
) -> list[SessionSummary]:
    """Filtered learning sessions with derived accuracy, newest first."""
    if shape is not None:
        shape = shape.strip().lower() or None
    return _session_summaries(db, student_id=student_id, shape=shape, limit=limit)


def compute_student_status(
    db: Database, student_id: str, config: DashboardConfig | None = None
) -> StudentStatus:
    """Average score over all answers (Correct = 100, else 0) and status label."""
    config = config or DashboardConfig()
    row = db.fetch_one(
        """
        SELECT COUNT(*) AS total,
               SUM(CASE WHEN assessment = ? THEN 1 ELSE 0 END) AS correct
        FROM assessment_sessions
        WHERE student_id = ?
        """,
        (CORRECT_LABEL, student_id),
    )
    total = row["total"] if row else 0
    correct = (row["correct"] or 0) if row else 0
    average = percentage(correct, total)
    return StudentStatus(
        student_id=student_id,
        total_answers=total,
        correct_answers=correct,
        average_score=average,
        status=classify_status(average, config.excellent_threshold, config.active_threshold),
    )


def _shape_progress(
    summaries: list[SessionSummary], shapes: list[str]
) -> dict[str, ShapeProgress]:
    progress = {shape: ShapeProgress(shape=shape) for shape in shapes}
    for shape in shapes:
        matching = [s for s in summaries if s.shape == shape]
        if not matching:
            continue
        asked = sum(s.questions_asked for s in matching)
        correct = sum(s.correct_answers for s in matching)
        progress[shape] = ShapeProgress(
            shape=shape,
            sessions=len(matching),
            progress=mean_rounded([s.accuracy for s in matching]),
            accuracy=percentage(correct, asked),
        )
    return progress


def compute_shape_progress(
    db: Database, student_id: str, config: DashboardConfig | None = None
) -> dict[str, ShapeProgress]:
    """Progress for every configured shape, zeros where nothing was taught."""
    config = config or DashboardConfig()
    return _shape_progress(compute_student_summary(db, student_id), config.shapes)


def list_students(
    db: Database, sort: str = "recent", config: DashboardConfig | None = None
) -> list[StudentOverview]:
    """All students with their aggregates.

    Args:
        sort: "recent" (registration, newest first), "name", "score"
            (highest average first) or "sessions" (most sessions first)

    Raises:
        ValidationError: Unknown sort key
    """
    if sort not in _ORDER_BY:
        raise ValidationError(
            f"Unknown sort '{sort}'. Expected one of: {', '.join(SORT_ORDERS)}"
        )
    config = config or DashboardConfig()

    rows = db.fetch_all(
        f"""
        SELECT s.*,
            (SELECT COUNT(*) FROM learning_sessions l
             WHERE l.student_id = s.student_id) AS total_sessions,
            (SELECT DATE(MAX(l.timestamp)) FROM learning_sessions l
             WHERE l.student_id = s.student_id) AS last_session_date,
            (SELECT COUNT(*) FROM assessment_sessions a
             WHERE a.student_id = s.student_id) AS total_answers,
            (SELECT COUNT(*) FROM assessment_sessions a
             WHERE a.student_id = s.student_id AND a.assessment = ?) AS correct_answers
        FROM students s
        ORDER BY {_ORDER_BY[sort]}
        """,
        (CORRECT_LABEL,),
    )

    overviews = []
    for row in rows:
        average = percentage(row["correct_answers"], row["total_answers"])
        overviews.append(
            StudentOverview(
                student=StudentRecord.from_row(row),
                total_sessions=row["total_sessions"],
                average_score=average,
                last_session_date=row["last_session_date"],
                status=classify_status(
                    average, config.excellent_threshold, config.active_threshold
                ),
            )
        )

    if sort == "score":
        overviews.sort(key=lambda o: o.average_score, reverse=True)
    return overviews


def get_student_detail(
    db: Database, student_id: str, config: DashboardConfig | None = None
) -> StudentDetail:
    """Student profile plus aggregates and recent sessions.

    Raises:
        NotFoundError: If the student does not exist
    """
    config = config or DashboardConfig()
    student = get_student_or_raise(db, student_id)

    summaries = compute_student_summary(db, student_id)
    status = compute_student_status(db, student_id, config)
    return StudentDetail(
        student=student,
        total_sessions=len(summaries),
        average_score=status.average_score,
        status=status.status,
        last_session_date=summaries[0].timestamp[:10] if summaries else None,
        shapes_progress=_shape_progress(summaries, config.shapes),
        recent_sessions=summaries[: config.recent_sessions_limit],
    )
