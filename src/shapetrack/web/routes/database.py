"""Database maintenance endpoints."""

import structlog
from fastapi import APIRouter, Depends

from shapetrack.db.database import Database
from shapetrack.web.dependencies import get_database
from shapetrack.web.schemas import DatabaseStatusResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/database", tags=["database"])


def _status(db: Database) -> DatabaseStatusResponse:
    tables = db.table_status()
    return DatabaseStatusResponse(tables=tables, all_tables_exist=all(tables.values()))


@router.get("/status", response_model=DatabaseStatusResponse)
def database_status(db: Database = Depends(get_database)) -> DatabaseStatusResponse:
    """Report which tables exist."""
    return _status(db)


@router.post("/init", response_model=DatabaseStatusResponse)
def init_database(db: Database = Depends(get_database)) -> DatabaseStatusResponse:
    """Create any missing tables. Safe to call repeatedly."""
    db.init_schema()
    logger.info("database.init_requested", path=str(db.path))
    return _status(db)
