"""Student endpoints."""

from fastapi import APIRouter, Depends, Query, status

from shapetrack.config.app_config import AppConfig
from shapetrack.core.progress import classify_status, get_student_detail, list_students
from shapetrack.core.students import register_student, remove_student, update_student_profile
from shapetrack.db.database import Database
from shapetrack.utils.time_utils import Clock
from shapetrack.web.dependencies import get_clock, get_config, get_database
from shapetrack.web.schemas import (
    LearningSessionResponse,
    ShapeProgressResponse,
    StudentCreate,
    StudentDetailResponse,
    StudentListResponse,
    StudentResponse,
    StudentSummaryResponse,
    StudentUpdate,
)

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("", response_model=StudentListResponse)
def list_all_students(
    sort: str = Query("recent", description="recent | name | score | sessions"),
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_config),
) -> StudentListResponse:
    """List all students with aggregated progress."""
    overviews = list_students(db, sort=sort, config=config.dashboard)
    students = [
        StudentSummaryResponse(
            **o.student.to_dict(),
            total_sessions=o.total_sessions,
            average_score=o.average_score,
            last_session_date=o.last_session_date,
            status=o.status,
        )
        for o in overviews
    ]
    return StudentListResponse(students=students, count=len(students))


@router.get("/{student_id}", response_model=StudentDetailResponse)
def get_student(
    student_id: str,
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_config),
) -> StudentDetailResponse:
    """Get a student with shape progress and recent sessions."""
    detail = get_student_detail(db, student_id, config=config.dashboard)
    return StudentDetailResponse(
        **detail.student.to_dict(),
        total_sessions=detail.total_sessions,
        average_score=detail.average_score,
        last_session_date=detail.last_session_date,
        status=detail.status,
        shapes_progress={
            shape: ShapeProgressResponse(**p.to_dict())
            for shape, p in detail.shapes_progress.items()
        },
        recent_sessions=[LearningSessionResponse(**s.to_dict()) for s in detail.recent_sessions],
    )


@router.post("", response_model=StudentSummaryResponse, status_code=status.HTTP_201_CREATED)
def create_student(
    student_data: StudentCreate,
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> StudentSummaryResponse:
    """Register a new student."""
    optional = student_data.model_dump(exclude={"student_id", "first_name", "last_name"})
    student = register_student(
        db,
        student_id=student_data.student_id,
        first_name=student_data.first_name,
        last_name=student_data.last_name,
        clock=clock,
        **optional,
    )
    dashboard = config.dashboard
    return StudentSummaryResponse(
        **student.to_dict(),
        status=classify_status(0, dashboard.excellent_threshold, dashboard.active_threshold),
    )


@router.put("/{student_id}", response_model=StudentResponse)
def update_student(
    student_id: str,
    changes: StudentUpdate,
    db: Database = Depends(get_database),
    clock: Clock = Depends(get_clock),
) -> StudentResponse:
    """Update only the supplied fields of a student."""
    student = update_student_profile(
        db, student_id, changes.model_dump(exclude_unset=True), clock=clock
    )
    return StudentResponse(**student.to_dict())


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, db: Database = Depends(get_database)) -> None:
    """Delete a student and everything recorded for them."""
    remove_student(db, student_id)
