"""FastAPI application factory.

Main entry point for the shapetrack Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shapetrack import __version__
from shapetrack.config.app_config import AppConfig, load_app_config
from shapetrack.core.assessment import AssessmentManager
from shapetrack.db.database import Database
from shapetrack.errors import (
    ConflictError,
    NotFoundError,
    ShapetrackError,
    StoreUnavailableError,
    ValidationError,
)
from shapetrack.utils.time_utils import Clock, utc_now
from shapetrack.web.routes import (
    assessment_router,
    database_router,
    health_router,
    sessions_router,
    students_router,
)
from shapetrack.web.schemas import ErrorResponse

logger = structlog.get_logger(__name__)

# Most specific classes first
_STATUS_CODES: tuple[tuple[type[ShapetrackError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StoreUnavailableError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database at startup and close it at shutdown."""
    database: Database = app.state.database
    database.open()
    logger.info(
        "api_startup",
        db_path=str(database.path.absolute()),
        pool_size=database.pool_size,
        shapes=app.state.config.dashboard.shapes,
    )
    yield
    database.close()
    logger.info("api_shutdown")


async def domain_error_handler(request: Request, exc: ShapetrackError) -> JSONResponse:
    """Translate domain errors into JSON responses.

    Client errors carry their message; server-side failures return a
    generic message and the detail is only logged.
    """
    status_code = 500
    for error_class, code in _STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break

    if status_code >= 500:
        logger.error(
            "request_failed",
            method=request.method,
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
        detail = (
            "Service temporarily unavailable"
            if status_code == 503
            else "Internal server error"
        )
    else:
        logger.info("request_rejected", path=request.url.path, code=exc.code)
        detail = exc.message

    body = ErrorResponse(detail=detail, code=exc.code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", method=request.method, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="Internal server error", code="internal_error").model_dump(),
    )


def create_app(
    config: AppConfig | None = None,
    database: Database | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application config (defaults to load_app_config())
        database: Store handle; built from config.database when omitted.
            It is opened and closed by the app lifespan.
        clock: Time source for timestamps and "today" (defaults to UTC now)

    Returns:
        Configured FastAPI app instance
    """
    config = config or load_app_config()
    database = database or Database.from_config(config.database)
    clock = clock or utc_now

    app = FastAPI(
        title="Shapetrack API",
        description="Student progress tracking for the tactile-shape learning program",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.database = database
    app.state.clock = clock
    app.state.assessments = AssessmentManager(database, clock)

    # CORS middleware for the dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShapetrackError, domain_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(students_router)
    app.include_router(sessions_router)
    app.include_router(assessment_router)
    app.include_router(database_router)

    return app


# Default app instance for uvicorn
app = create_app()
