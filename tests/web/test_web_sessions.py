"""Tests for learning session endpoints."""

import pytest


@pytest.fixture
def taught(client, create_student, clock):
    """STU1 learned circle twice and square once, STU2 learned triangle."""
    create_student("STU1")
    create_student("STU2", first_name="Ben")
    lessons = [
        ("STU1", "circle", "Round, no corners"),
        ("STU1", "square", "Four equal sides"),
        ("STU1", "circle", "Like a coin"),
        ("STU2", "triangle", "Three corners"),
    ]
    for student_id, shape, explanation in lessons:
        clock.advance(minutes=1)
        response = client.post(
            "/api/sessions",
            json={"studentId": student_id, "shape": shape, "explanation": explanation},
        )
        assert response.status_code == 201, response.text


class TestCreateSession:
    """Tests for POST /api/sessions."""

    def test_create(self, client, create_student):
        create_student()

        response = client.post(
            "/api/sessions",
            json={"studentId": "STU1", "shape": "Circle", "explanation": "Round"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["id"] > 0
        assert data["shape"] == "circle"
        assert data["timestamp"] == "2024-03-15 10:30:00"

    def test_explicit_timestamp(self, client, create_student):
        create_student()
        data = client.post(
            "/api/sessions",
            json={
                "studentId": "STU1",
                "shape": "square",
                "explanation": "Four sides",
                "timestamp": "2024-03-01T09:15:00Z",
            },
        ).json()
        assert data["timestamp"] == "2024-03-01 09:15:00"

    def test_unknown_student(self, client):
        response = client.post(
            "/api/sessions",
            json={"studentId": "NOPE", "shape": "circle", "explanation": "Round"},
        )
        assert response.status_code == 404

    def test_unknown_shape(self, client, create_student):
        create_student()
        response = client.post(
            "/api/sessions",
            json={"studentId": "STU1", "shape": "hexagon", "explanation": "Six"},
        )
        assert response.status_code == 400
        assert "Unknown shape" in response.json()["detail"]

    def test_missing_explanation(self, client, create_student):
        create_student()
        response = client.post("/api/sessions", json={"studentId": "STU1", "shape": "circle"})
        assert response.status_code == 422


class TestListSessions:
    """Tests for GET /api/sessions."""

    def test_list_all(self, client, taught):
        data = client.get("/api/sessions").json()

        assert data["count"] == 4
        assert data["sessions"][0]["student_id"] == "STU2"

    def test_filter_by_student_and_shape(self, client, taught):
        data = client.get(
            "/api/sessions", params={"studentId": "STU1", "shape": "circle"}
        ).json()

        assert data["count"] == 2
        assert [s["explanation"] for s in data["sessions"]] == ["Like a coin", "Round, no corners"]

    def test_limit_returns_most_recent(self, client, taught):
        data = client.get(
            "/api/sessions", params={"studentId": "STU1", "shape": "circle", "limit": 1}
        ).json()

        assert data["count"] == 1
        assert data["sessions"][0]["explanation"] == "Like a coin"

    def test_nonpositive_limit_uses_default(self, client, taught):
        data = client.get("/api/sessions", params={"limit": 0}).json()
        assert data["count"] == 4

    def test_same_day_accuracy(self, client, taught):
        for assessment in ("Correct", "Correct", "Incorrect"):
            client.post(
                "/api/assessment/sessions",
                json={"studentId": "STU1", "question": "Which?", "assessment": assessment},
            )

        data = client.get("/api/sessions", params={"studentId": "STU1"}).json()

        for session in data["sessions"]:
            assert session["questions_asked"] == 3
            assert session["correct_answers"] == 2
            assert session["accuracy"] == 67

    def test_no_answers_zero_accuracy(self, client, taught):
        session = client.get("/api/sessions", params={"studentId": "STU2"}).json()["sessions"][0]
        assert session["questions_asked"] == 0
        assert session["accuracy"] == 0
