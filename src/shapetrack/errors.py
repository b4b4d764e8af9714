"""Error taxonomy shared by the store, the core and the web layer.

Every error carries a short machine ``code``; the web layer maps each class
to an HTTP status in ``shapetrack.web.api``.
"""

from __future__ import annotations


class ShapetrackError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ShapetrackError):
    """Missing or malformed input. Never retried."""

    code = "validation_error"


class NotFoundError(ShapetrackError):
    """Referenced student or session does not exist."""

    code = "not_found"


class ConflictError(ShapetrackError):
    """Operation clashes with existing state."""

    code = "conflict"


class DuplicateStudentError(ConflictError):
    """A student with the same student_id is already registered."""

    code = "duplicate_student"

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student '{student_id}' already exists")


class SessionAlreadyActiveError(ConflictError):
    """An assessment is already in progress for the student."""

    code = "session_already_active"

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Assessment session already active for student '{student_id}'")


class AlreadyAssessedTodayError(ConflictError):
    """The student already completed an assessment on the current date."""

    code = "already_assessed_today"

    def __init__(self, student_id: str, date: str):
        self.student_id = student_id
        self.date = date
        super().__init__(f"Student '{student_id}' has already been assessed on {date}")


class StoreUnavailableError(ShapetrackError):
    """The database could not be reached, even after the bounded retry."""

    code = "store_unavailable"


class InternalError(ShapetrackError):
    """Unexpected database failure. Details are logged, not returned."""

    code = "internal_error"
