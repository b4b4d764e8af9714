"""FastAPI dependencies.

The app factory stores the owned Database, config, clock and assessment
manager on app.state; handlers receive them through these providers so
tests can build an app around their own database.
"""

from fastapi import Request

from shapetrack.config.app_config import AppConfig
from shapetrack.core.assessment import AssessmentManager
from shapetrack.db.database import Database
from shapetrack.utils.time_utils import Clock


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_assessment_manager(request: Request) -> AssessmentManager:
    return request.app.state.assessments
