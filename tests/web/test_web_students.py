"""Tests for students endpoints."""


class TestListStudents:
    """Tests for GET /api/students."""

    def test_list_students_empty(self, client):
        """List returns empty array when no students."""
        response = client.get("/api/students")
        assert response.status_code == 200
        data = response.json()
        assert data["students"] == []
        assert data["count"] == 0

    def test_list_students_after_create(self, client, create_student):
        """List returns created students with aggregates."""
        create_student()

        data = client.get("/api/students").json()

        assert data["count"] == 1
        student = data["students"][0]
        assert student["student_id"] == "STU1"
        assert student["total_sessions"] == 0
        assert student["average_score"] == 0
        assert student["last_session_date"] is None
        assert student["status"] == "needs_attention"

    def test_list_sorted_by_name(self, client, create_student, clock):
        create_student("STU1", last_name="Zed")
        clock.advance(minutes=1)
        create_student("STU2", last_name="Adams")

        by_name = client.get("/api/students", params={"sort": "name"}).json()
        recent = client.get("/api/students").json()

        assert [s["student_id"] for s in by_name["students"]] == ["STU2", "STU1"]
        assert [s["student_id"] for s in recent["students"]] == ["STU2", "STU1"]

    def test_unknown_sort(self, client):
        response = client.get("/api/students", params={"sort": "age"})
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


class TestCreateStudent:
    """Tests for POST /api/students."""

    def test_create_student_minimal(self, client):
        """Create student with only the required fields."""
        response = client.post(
            "/api/students",
            json={"studentId": "STU9", "firstName": "Ana", "lastName": "Lee"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["student_id"] == "STU9"
        assert data["first_name"] == "Ana"
        assert data["created_at"] == "2024-03-15 10:30:00"
        assert data["total_sessions"] == 0
        assert data["average_score"] == 0
        assert data["status"] == "needs_attention"

    def test_create_student_full(self, client, create_student):
        data = create_student(
            email="ana@example.com",
            phone="555-0100",
            dateOfBirth="2015-06-01",
            emergencyContact="Maria Lee",
            emergencyPhone="555-0101",
            medicalNotes="Low vision",
            learningGoals="Recognize circles",
        )
        assert data["email"] == "ana@example.com"
        assert data["date_of_birth"] == "2015-06-01"
        assert data["emergency_contact"] == "Maria Lee"
        assert data["learning_goals"] == "Recognize circles"

    def test_snake_case_accepted(self, client):
        response = client.post(
            "/api/students",
            json={"student_id": "STU2", "first_name": "Ben", "last_name": "Ray"},
        )
        assert response.status_code == 201

    def test_create_then_get(self, client, create_student):
        """A created student is returned by GET with empty progress."""
        create_student("STU9")

        response = client.get("/api/students/STU9")

        assert response.status_code == 200
        data = response.json()
        assert data["student_id"] == "STU9"
        assert data["total_sessions"] == 0
        assert data["average_score"] == 0
        assert data["recent_sessions"] == []
        assert set(data["shapes_progress"]) == {"circle", "square", "triangle", "rectangle"}

    def test_duplicate(self, client, create_student):
        create_student()
        response = client.post(
            "/api/students",
            json={"studentId": "STU1", "firstName": "Other", "lastName": "Person"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_student"

    def test_missing_name(self, client):
        response = client.post("/api/students", json={"studentId": "STU1", "firstName": "Ana"})
        assert response.status_code == 422

    def test_blank_name(self, client):
        response = client.post(
            "/api/students",
            json={"studentId": "STU1", "firstName": "   ", "lastName": "Lee"},
        )
        assert response.status_code == 400

    def test_invalid_email(self, client):
        response = client.post(
            "/api/students",
            json={"studentId": "STU1", "firstName": "Ana", "lastName": "Lee", "email": "nope"},
        )
        assert response.status_code == 400
        assert "email" in response.json()["detail"]


class TestGetStudent:
    """Tests for GET /api/students/{student_id}."""

    def test_not_found(self, client):
        response = client.get("/api/students/NOPE")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_detail_with_sessions(self, client, create_student):
        create_student()
        client.post(
            "/api/sessions",
            json={"studentId": "STU1", "shape": "circle", "explanation": "Round"},
        )
        client.post(
            "/api/assessment/sessions",
            json={"studentId": "STU1", "question": "Q1", "answer": "circle", "assessment": "Correct"},
        )

        data = client.get("/api/students/STU1").json()

        assert data["total_sessions"] == 1
        assert data["average_score"] == 100
        assert data["status"] == "excellent"
        assert data["last_session_date"] == "2024-03-15"
        assert data["shapes_progress"]["circle"] == {"sessions": 1, "progress": 100, "accuracy": 100}
        assert data["recent_sessions"][0]["accuracy"] == 100


class TestUpdateStudent:
    """Tests for PUT /api/students/{student_id}."""

    def test_partial_update(self, client, create_student, clock):
        """Only supplied fields change."""
        create_student(phone="555-0100")
        clock.advance(hours=1)

        response = client.put("/api/students/STU1", json={"email": "ana@example.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "ana@example.com"
        assert data["phone"] == "555-0100"
        assert data["first_name"] == "Ana"
        assert data["updated_at"] == "2024-03-15 11:30:00"

    def test_update_names_camel_case(self, client, create_student):
        create_student()
        data = client.put("/api/students/STU1", json={"firstName": "Anna"}).json()
        assert data["first_name"] == "Anna"
        assert data["last_name"] == "Lee"

    def test_update_missing(self, client):
        response = client.put("/api/students/NOPE", json={"phone": "1"})
        assert response.status_code == 404


class TestDeleteStudent:
    """Tests for DELETE /api/students/{student_id}."""

    def test_delete(self, client, create_student):
        create_student()
        client.post("/api/assessment/start", json={"studentId": "STU1"})

        response = client.delete("/api/students/STU1")

        assert response.status_code == 204
        assert client.get("/api/students/STU1").status_code == 404
        assert client.get("/api/assessment/current").json()["current_student"] is None

    def test_delete_missing(self, client):
        assert client.delete("/api/students/NOPE").status_code == 404
