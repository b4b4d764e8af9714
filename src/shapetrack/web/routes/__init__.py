"""Route handlers for the Web API."""

from shapetrack.web.routes.health import router as health_router
from shapetrack.web.routes.students import router as students_router
from shapetrack.web.routes.sessions import router as sessions_router
from shapetrack.web.routes.assessment import router as assessment_router
from shapetrack.web.routes.database import router as database_router

__all__ = [
    "health_router",
    "students_router",
    "sessions_router",
    "assessment_router",
    "database_router",
]
