"""Repository functions for the students table.

Provides CRUD operations for student records. Deleting a student cascades
to learning sessions, assessment answers and assessment markers through
the foreign keys declared in the schema.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from shapetrack.db.database import Database
from shapetrack.errors import DuplicateStudentError

logger = structlog.get_logger(__name__)

# Columns a partial update may touch, in schema order
UPDATABLE_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "email",
    "phone",
    "emergency_contact",
    "emergency_phone",
    "medical_notes",
    "learning_goals",
)


@dataclass
class StudentRecord:
    """Student record from database."""

    student_id: str
    first_name: str
    last_name: str
    date_of_birth: str | None
    email: str | None
    phone: str | None
    emergency_contact: str | None
    emergency_phone: str | None
    medical_notes: str | None
    learning_goals: str | None
    created_at: str
    updated_at: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StudentRecord:
        return cls(
            student_id=row["student_id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            date_of_birth=row["date_of_birth"],
            email=row["email"],
            phone=row["phone"],
            emergency_contact=row["emergency_contact"],
            emergency_phone=row["emergency_phone"],
            medical_notes=row["medical_notes"],
            learning_goals=row["learning_goals"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def student_exists(conn: sqlite3.Connection, student_id: str) -> bool:
    """Check for a student inside an open transaction."""
    row = conn.execute(
        "SELECT 1 FROM students WHERE student_id = ?", (student_id,)
    ).fetchone()
    return row is not None


def insert_student(
    db: Database,
    student_id: str,
    first_name: str,
    last_name: str,
    created_at: str,
    **optional: str | None,
) -> StudentRecord:
    """Insert a new student record.

    Args:
        db: Open database
        student_id: External registration code
        first_name: Given name
        last_name: Family name
        created_at: Storage-formatted creation timestamp
        **optional: Any of the remaining UPDATABLE_FIELDS

    Returns:
        The stored record

    Raises:
        DuplicateStudentError: If student_id already exists
    """
    values = {field: optional.get(field) for field in UPDATABLE_FIELDS[2:]}

    def _insert(conn: sqlite3.Connection) -> StudentRecord:
        try:
            conn.execute(
                """
                INSERT INTO students (
                    student_id, first_name, last_name, date_of_birth,
                    email, phone, emergency_contact, emergency_phone,
                    medical_notes, learning_goals, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    student_id,
                    first_name,
                    last_name,
                    values["date_of_birth"],
                    values["email"],
                    values["phone"],
                    values["emergency_contact"],
                    values["emergency_phone"],
                    values["medical_notes"],
                    values["learning_goals"],
                    created_at,
                    created_at,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateStudentError(student_id) from e

        row = conn.execute(
            "SELECT * FROM students WHERE student_id = ?", (student_id,)
        ).fetchone()
        return StudentRecord.from_row(row)

    record = db.run(_insert)
    logger.debug("students.inserted", student_id=student_id)
    return record


def get_student(db: Database, student_id: str) -> StudentRecord | None:
    """Get student by ID.

    Returns:
        StudentRecord or None if not found
    """
    row = db.fetch_one("SELECT * FROM students WHERE student_id = ?", (student_id,))
    if row is None:
        return None
    return StudentRecord.from_row(row)


def update_student(
    db: Database,
    student_id: str,
    changes: dict[str, str | None],
    updated_at: str,
) -> StudentRecord | None:
    """Apply a partial update.

    Every updatable column is written as COALESCE(?, column), so a None in
    `changes` (or a missing key) keeps the stored value.

    Returns:
        The updated record, or None if the student does not exist
    """
    params = [changes.get(field) for field in UPDATABLE_FIELDS]
    assignments = ", ".join(f"{field} = COALESCE(?, {field})" for field in UPDATABLE_FIELDS)

    def _update(conn: sqlite3.Connection) -> StudentRecord | None:
        cursor = conn.execute(
            f"UPDATE students SET {assignments}, updated_at = ? WHERE student_id = ?",
            (*params, updated_at, student_id),
        )
        if cursor.rowcount == 0:
            return None
        row = conn.execute(
            "SELECT * FROM students WHERE student_id = ?", (student_id,)
        ).fetchone()
        return StudentRecord.from_row(row)

    record = db.run(_update)
    if record is not None:
        logger.debug(
            "students.updated",
            student_id=student_id,
            fields=[f for f in UPDATABLE_FIELDS if changes.get(f) is not None],
        )
    return record


def delete_student(db: Database, student_id: str) -> bool:
    """Delete a student and, by cascade, everything recorded for them.

    Returns:
        True if deleted, False if not found
    """
    deleted = db.execute("DELETE FROM students WHERE student_id = ?", (student_id,)) > 0
    if deleted:
        logger.info("students.deleted", student_id=student_id)
    return deleted
