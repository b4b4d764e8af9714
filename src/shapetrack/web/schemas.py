"""Pydantic schemas for the Web API.

Request bodies accept camelCase (as sent by the dashboard and the board
controller) or snake_case keys. Responses are always snake_case.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


# =============================================================================
# STUDENT SCHEMAS
# =============================================================================


class StudentCreate(BaseModel):
    """Request body for registering a student."""

    student_id: str = Field(..., min_length=1, max_length=20, alias="studentId")
    first_name: str = Field(..., min_length=1, max_length=100, alias="firstName")
    last_name: str = Field(..., min_length=1, max_length=100, alias="lastName")
    date_of_birth: str | None = Field(default=None, alias="dateOfBirth")
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    emergency_contact: str | None = Field(default=None, max_length=100, alias="emergencyContact")
    emergency_phone: str | None = Field(default=None, max_length=20, alias="emergencyPhone")
    medical_notes: str | None = Field(default=None, alias="medicalNotes")
    learning_goals: str | None = Field(default=None, alias="learningGoals")

    model_config = {"populate_by_name": True}


class StudentUpdate(BaseModel):
    """Request body for a partial student update. Omitted fields are kept."""

    first_name: str | None = Field(default=None, max_length=100, alias="firstName")
    last_name: str | None = Field(default=None, max_length=100, alias="lastName")
    date_of_birth: str | None = Field(default=None, alias="dateOfBirth")
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    emergency_contact: str | None = Field(default=None, max_length=100, alias="emergencyContact")
    emergency_phone: str | None = Field(default=None, max_length=20, alias="emergencyPhone")
    medical_notes: str | None = Field(default=None, alias="medicalNotes")
    learning_goals: str | None = Field(default=None, alias="learningGoals")

    model_config = {"populate_by_name": True}


class StudentResponse(BaseModel):
    """Student profile."""

    student_id: str
    first_name: str
    last_name: str
    date_of_birth: str | None = None
    email: str | None = None
    phone: str | None = None
    emergency_contact: str | None = None
    emergency_phone: str | None = None
    medical_notes: str | None = None
    learning_goals: str | None = None
    created_at: str
    updated_at: str


class StudentSummaryResponse(StudentResponse):
    """Student profile with aggregated progress."""

    total_sessions: int = 0
    average_score: int = 0
    last_session_date: str | None = None
    status: str = "needs_attention"


class StudentListResponse(BaseModel):
    """Response for list of students."""

    students: list[StudentSummaryResponse]
    count: int


class ShapeProgressResponse(BaseModel):
    """Progress for one shape."""

    sessions: int = 0
    progress: int = 0
    accuracy: int = 0


# =============================================================================
# LEARNING SESSION SCHEMAS
# =============================================================================


class LearningSessionCreate(BaseModel):
    """Request body for recording a learning session."""

    student_id: str = Field(..., min_length=1, alias="studentId")
    shape: str = Field(..., min_length=1, max_length=50)
    explanation: str = Field(..., min_length=1)
    timestamp: datetime | None = None

    model_config = {"populate_by_name": True}


class LearningSessionRecordResponse(BaseModel):
    """A stored learning session."""

    id: int
    student_id: str
    shape: str
    explanation: str
    timestamp: str


class LearningSessionResponse(LearningSessionRecordResponse):
    """A learning session with same-day assessment results."""

    questions_asked: int = 0
    correct_answers: int = 0
    accuracy: int = 0


class LearningSessionListResponse(BaseModel):
    """Response for a filtered list of learning sessions."""

    sessions: list[LearningSessionResponse]
    count: int


class StudentDetailResponse(StudentSummaryResponse):
    """Student detail page."""

    shapes_progress: dict[str, ShapeProgressResponse] = Field(default_factory=dict)
    recent_sessions: list[LearningSessionResponse] = Field(default_factory=list)


# =============================================================================
# ASSESSMENT SCHEMAS
# =============================================================================


class AssessmentRequest(BaseModel):
    """Request body for start / complete / stop."""

    student_id: str = Field(..., min_length=1, alias="studentId")

    model_config = {"populate_by_name": True}


class AssessmentSessionResponse(BaseModel):
    """An assessment marker."""

    session_id: int
    student_id: str
    started_at: str
    ended_at: str | None = None
    status: str
    is_active: bool


class AssessmentStatusResponse(BaseModel):
    """Assessment status of a student for the current date."""

    student_id: str
    date: str
    assessed_today: bool
    learned_today: bool
    current_session: AssessmentSessionResponse | None = None
    last_assessment: str | None = None
    last_learning: str | None = None


class CurrentStudentResponse(BaseModel):
    """Student currently being assessed."""

    session_id: int
    student_id: str
    first_name: str
    last_name: str
    started_at: str


class CurrentAssessmentResponse(BaseModel):
    """Response for the globally current assessment."""

    current_student: CurrentStudentResponse | None = None
    message: str = ""


class AnswerCreate(BaseModel):
    """One scored question from the assessment feed."""

    student_id: str = Field(..., min_length=1, alias="studentId")
    question: str = Field(..., min_length=1)
    answer: str = ""
    assessment: str = Field(..., min_length=1, max_length=50)
    timestamp: datetime | None = None

    model_config = {"populate_by_name": True}


class AnswerResponse(BaseModel):
    """A stored assessment answer."""

    id: int
    student_id: str
    question: str
    answer: str
    assessment: str
    is_correct: bool
    timestamp: str


class AnswerListResponse(BaseModel):
    """Response for raw assessment answers."""

    answers: list[AnswerResponse]
    count: int


# =============================================================================
# DATABASE / HEALTH SCHEMAS
# =============================================================================


class DatabaseStatusResponse(BaseModel):
    """Which tables exist."""

    tables: dict[str, bool]
    all_tables_exist: bool


class ErrorResponse(BaseModel):
    """Error body for domain errors."""

    detail: str
    code: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "ok"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
