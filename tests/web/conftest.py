"""Fixtures for Web API tests."""

import pytest
from fastapi.testclient import TestClient

from shapetrack.config.app_config import AppConfig, DatabaseConfig
from shapetrack.web.api import create_app


@pytest.fixture
def app_config(tmp_path):
    """Config pointing at an isolated database file."""
    return AppConfig(
        database=DatabaseConfig(path=str(tmp_path / "web" / "shapetrack.db"), pool_size=4)
    )


@pytest.fixture
def client(app_config, clock):
    """Test client with the app lifespan running (database open)."""
    app = create_app(config=app_config, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def create_student(client):
    """POST a student and return the response JSON."""

    def _create(student_id: str = "STU1", first_name: str = "Ana", last_name: str = "Lee", **extra):
        payload = {"studentId": student_id, "firstName": first_name, "lastName": last_name}
        payload.update(extra)
        response = client.post("/api/students", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
