"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from shapetrack import __version__
from shapetrack.db.database import Database
from shapetrack.web.dependencies import get_database
from shapetrack.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(db: Database = Depends(get_database)) -> HealthResponse:
    """Check API health and database reachability."""
    reachable = db.ping()
    return HealthResponse(
        status="ok" if reachable else "degraded",
        version=__version__,
        database="ok" if reachable else "unavailable",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
