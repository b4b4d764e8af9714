"""Assessment endpoints.

start/complete/stop drive the per-student state machine; the sessions
endpoints are the read and write paths for scored answers.
"""

from fastapi import APIRouter, Depends, Query, status

from shapetrack.core.assessment import AssessmentManager, AssessmentSession
from shapetrack.web.dependencies import get_assessment_manager
from shapetrack.web.schemas import (
    AnswerCreate,
    AnswerListResponse,
    AnswerResponse,
    AssessmentRequest,
    AssessmentSessionResponse,
    AssessmentStatusResponse,
    CurrentAssessmentResponse,
    CurrentStudentResponse,
)

router = APIRouter(prefix="/api/assessment", tags=["assessment"])


def _session_response(session: AssessmentSession) -> AssessmentSessionResponse:
    return AssessmentSessionResponse(**session.to_dict())


@router.post(
    "/start",
    response_model=AssessmentSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_assessment(
    request: AssessmentRequest,
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> AssessmentSessionResponse:
    """Start an assessment. 409 if one is active or today's is done."""
    return _session_response(manager.start_assessment(request.student_id))


@router.post("/complete", response_model=AssessmentSessionResponse)
def complete_assessment(
    request: AssessmentRequest,
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> AssessmentSessionResponse:
    """Mark the active assessment as completed."""
    return _session_response(manager.complete_assessment(request.student_id))


@router.post("/stop", response_model=AssessmentSessionResponse)
def stop_assessment(
    request: AssessmentRequest,
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> AssessmentSessionResponse:
    """Cancel the active assessment; the student may start again today."""
    return _session_response(manager.stop_assessment(request.student_id))


@router.get("/status/{student_id}", response_model=AssessmentStatusResponse)
def get_assessment_status(
    student_id: str,
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> AssessmentStatusResponse:
    """Whether the student was assessed today and what is in progress."""
    result = manager.get_status(student_id)
    return AssessmentStatusResponse(
        student_id=result.student_id,
        date=result.date,
        assessed_today=result.assessed_today,
        learned_today=result.learned_today,
        current_session=(
            _session_response(result.current_session) if result.current_session else None
        ),
        last_assessment=result.last_assessment,
        last_learning=result.last_learning,
    )


@router.get("/current", response_model=CurrentAssessmentResponse)
def get_current_assessment(
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> CurrentAssessmentResponse:
    """The student currently being assessed, for the board controller."""
    current = manager.get_current()
    if current is None:
        return CurrentAssessmentResponse(message="No active assessment session")

    return CurrentAssessmentResponse(
        current_student=CurrentStudentResponse(
            session_id=current.session_id,
            student_id=current.student_id,
            first_name=current.first_name,
            last_name=current.last_name,
            started_at=current.started_at,
        ),
        message="Assessment in progress",
    )


@router.get("/sessions", response_model=AnswerListResponse)
def list_assessment_answers(
    student_id: str | None = Query(None, alias="studentId"),
    date: str | None = Query(None, description="YYYY-MM-DD"),
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> AnswerListResponse:
    """Raw scored answers for a student, newest first."""
    answers = manager.list_answers(student_id, date=date)
    return AnswerListResponse(
        answers=[AnswerResponse(**a.to_dict()) for a in answers],
        count=len(answers),
    )


@router.post(
    "/sessions",
    response_model=AnswerResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_assessment_answer(
    request: AnswerCreate,
    manager: AssessmentManager = Depends(get_assessment_manager),
) -> AnswerResponse:
    """Store one scored answer from the assessment feed."""
    record = manager.record_answer(
        student_id=request.student_id,
        question=request.question,
        answer=request.answer,
        assessment=request.assessment,
        timestamp=request.timestamp,
    )
    return AnswerResponse(**record.to_dict())
