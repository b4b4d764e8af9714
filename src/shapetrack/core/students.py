"""Student registry and learning-session recording.

Validation and timestamps live here; SQL lives in the repositories.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

import structlog

from shapetrack.config.app_config import DEFAULT_SHAPES
from shapetrack.db.database import Database
from shapetrack.db.sessions_repository import LearningSessionRecord, insert_learning_session
from shapetrack.db.students_repository import (
    UPDATABLE_FIELDS,
    StudentRecord,
    delete_student,
    get_student,
    insert_student,
    student_exists,
    update_student,
)
from shapetrack.errors import NotFoundError, ValidationError
from shapetrack.utils.time_utils import Clock, format_timestamp, utc_now
from shapetrack.utils.validators import (
    normalize_shape,
    parse_date,
    require_text,
    validate_email,
    validate_student_id,
)

logger = structlog.get_logger(__name__)


def _clean_optional(fields: dict[str, Any]) -> dict[str, str | None]:
    """Strip optional text fields and check the ones with a format."""
    cleaned: dict[str, str | None] = {}
    for name in UPDATABLE_FIELDS:
        value = fields.get(name)
        cleaned[name] = value.strip() if isinstance(value, str) else value

    if cleaned.get("email") and not validate_email(cleaned["email"]):
        raise ValidationError("Invalid email format")
    if cleaned.get("date_of_birth"):
        cleaned["date_of_birth"] = parse_date(cleaned["date_of_birth"])
    return cleaned


def register_student(
    db: Database,
    student_id: str,
    first_name: str,
    last_name: str,
    clock: Clock = utc_now,
    **optional: str | None,
) -> StudentRecord:
    """Register a new student.

    Raises:
        ValidationError: Missing names, malformed id, email or date of birth
        DuplicateStudentError: student_id already registered
    """
    student_id = validate_student_id(student_id)
    fields = _clean_optional(
        {"first_name": first_name, "last_name": last_name, **optional}
    )
    first = require_text(fields.pop("first_name"), "firstName")
    last = require_text(fields.pop("last_name"), "lastName")

    record = insert_student(
        db,
        student_id=student_id,
        first_name=first,
        last_name=last,
        created_at=format_timestamp(clock()),
        **fields,
    )
    logger.info("students.registered", student_id=student_id)
    return record


def update_student_profile(
    db: Database,
    student_id: str,
    changes: dict[str, Any],
    clock: Clock = utc_now,
) -> StudentRecord:
    """Apply a partial update. Fields left out (or None) keep their value.

    Raises:
        ValidationError: A supplied name is blank, or email/date malformed
        NotFoundError: Unknown student
    """
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    fields = _clean_optional(changes)
    for name in ("first_name", "last_name"):
        if fields.get(name) is not None and not fields[name]:
            raise ValidationError(f"{name} cannot be empty")

    record = update_student(db, student_id, fields, format_timestamp(clock()))
    if record is None:
        raise NotFoundError(f"Student '{student_id}' not found")
    return record


def get_student_or_raise(db: Database, student_id: str) -> StudentRecord:
    student = get_student(db, student_id)
    if student is None:
        raise NotFoundError(f"Student '{student_id}' not found")
    return student


def remove_student(db: Database, student_id: str) -> None:
    """Delete a student with all of their sessions and markers.

    Raises:
        NotFoundError: Unknown student
    """
    if not delete_student(db, student_id):
        raise NotFoundError(f"Student '{student_id}' not found")


def record_learning_session(
    db: Database,
    student_id: str,
    shape: str,
    explanation: str,
    shapes: list[str] | None = None,
    timestamp: datetime | None = None,
    clock: Clock = utc_now,
) -> LearningSessionRecord:
    """Store one explanation given to a student on the tactile board.

    Raises:
        ValidationError: Missing fields or a shape outside `shapes`
        NotFoundError: Unknown student
    """
    student_id = require_text(student_id, "studentId")
    shape = normalize_shape(shape, shapes or DEFAULT_SHAPES)
    explanation = require_text(explanation, "explanation")
    stamp = format_timestamp(timestamp or clock())

    def _insert(conn: sqlite3.Connection) -> LearningSessionRecord:
        if not student_exists(conn, student_id):
            raise NotFoundError(f"Student '{student_id}' not found")
        return insert_learning_session(conn, student_id, shape, explanation, stamp)

    record = db.run(_insert)
    logger.info(
        "learning_session.recorded",
        student_id=student_id,
        shape=shape,
        session_id=record.id,
    )
    return record
