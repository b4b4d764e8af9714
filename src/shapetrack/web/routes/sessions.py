"""Learning session endpoints."""

from fastapi import APIRouter, Depends, Query, status

from shapetrack.config.app_config import AppConfig
from shapetrack.core.progress import list_learning_sessions
from shapetrack.core.students import record_learning_session
from shapetrack.db.database import Database
from shapetrack.utils.time_utils import Clock
from shapetrack.utils.validators import clamp_limit
from shapetrack.web.dependencies import get_clock, get_config, get_database
from shapetrack.web.schemas import (
    LearningSessionCreate,
    LearningSessionListResponse,
    LearningSessionRecordResponse,
    LearningSessionResponse,
)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("", response_model=LearningSessionListResponse)
def list_sessions(
    student_id: str | None = Query(None, alias="studentId"),
    shape: str | None = Query(None),
    limit: int | None = Query(None),
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_config),
) -> LearningSessionListResponse:
    """List learning sessions, newest first, with same-day accuracy."""
    sessions = list_learning_sessions(
        db,
        student_id=student_id or None,
        shape=shape or None,
        limit=clamp_limit(limit, config.dashboard.default_sessions_limit),
    )
    return LearningSessionListResponse(
        sessions=[LearningSessionResponse(**s.to_dict()) for s in sessions],
        count=len(sessions),
    )


@router.post(
    "",
    response_model=LearningSessionRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    request: LearningSessionCreate,
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> LearningSessionRecordResponse:
    """Record a learning session from the tactile board."""
    record = record_learning_session(
        db,
        student_id=request.student_id,
        shape=request.shape,
        explanation=request.explanation,
        shapes=config.dashboard.shapes,
        timestamp=request.timestamp,
        clock=clock,
    )
    return LearningSessionRecordResponse(**record.to_dict())
