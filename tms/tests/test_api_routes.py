"""
API tests: authentication, ownership and the full author -> submit -> grade flow.
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from tms.database import get_db
from tms.main import app
from tms.tests.conftest import auth_header, make_token


async def create_course(client: AsyncClient, headers: dict, sections: int = 2) -> dict:
    response = await client.post("/api/courses", headers=headers, json={
        "title": "Data Protection",
        "sections": [{"title": f"Part {i}"} for i in range(1, sections + 1)],
    })
    assert response.status_code == 201
    return response.json()["data"]


async def create_assessment(client: AsyncClient, headers: dict, course_id: str) -> dict:
    response = await client.post("/api/assessments", headers=headers, json={
        "course_id": course_id,
        "title": "Data Protection Check",
        "duration": 20,
        "questions": [
            {
                "question_text": "Personal data includes email addresses.",
                "options": {"A": "True", "B": "False"},
                "correct_label": "A",
                "points": 4,
            },
            {
                "question_type": "free-text",
                "question_text": "Explain data minimisation.",
                "points": 6,
            },
        ],
    })
    assert response.status_code == 201
    return response.json()["data"]


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/learners/learner-1/stats")
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "AUTH_REQUIRED"

    @pytest.mark.asyncio
    async def test_expired_token(self, client):
        token = make_token("learner-1", expires_in=timedelta(minutes=-5))
        response = await client.get(
            "/api/learners/learner-1/stats",
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "AUTH_EXPIRED"

    @pytest.mark.asyncio
    async def test_tampered_token(self, client):
        token = make_token("learner-1") + "x"
        response = await client.get(
            "/api/learners/learner-1/stats",
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "AUTH_INVALID"

    @pytest.mark.asyncio
    async def test_student_cannot_author(self, client, student_headers):
        response = await client.post("/api/courses", headers=student_headers, json={"title": "Sneaky course"})
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_student_cannot_read_other_learner(self, client, student_headers):
        response = await client.get("/api/learners/learner-2/courses", headers=student_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "OWNERSHIP_VIOLATION"

    @pytest.mark.asyncio
    async def test_teacher_can_read_any_learner(self, client, teacher_headers):
        response = await client.get("/api/learners/learner-2/stats", headers=teacher_headers)
        assert response.status_code == 200
        assert response.json()["data"]["enrolled_courses"] == 0


class TestAssessmentFlow:

    @pytest.mark.asyncio
    async def test_submit_and_grade(self, client, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers)
        assessment = await create_assessment(client, teacher_headers, course["id"])
        objective_id, free_text_id = [q["id"] for q in assessment["questions"]]

        # Learners never see the answer key
        response = await client.get(
            f"/api/assessments/{assessment['id']}",
            params={"include_questions": True},
            headers=student_headers
        )
        assert response.status_code == 200
        questions = response.json()["data"]["questions"]
        assert all("correct_label" not in q for q in questions)
        assert response.json()["data"]["total_points"] == 10

        response = await client.post(
            f"/api/assessments/{assessment['id']}/submit",
            headers=student_headers,
            json={"answers": [
                {"question_id": objective_id, "answer_text": "a"},
                {"question_id": free_text_id, "answer_text": "Collect only what you need."},
                {"question_id": "not-a-question", "answer_text": "A"},
            ]}
        )
        assert response.status_code == 200
        result = response.json()["data"]
        assert result["learner_id"] == "learner-1"
        assert result["auto_graded_score"] == 4
        assert result["max_auto_graded_score"] == 4
        assert result["pending_manual_grading"] == 6
        assert result["max_score"] == 10
        assert result["status"] == "submitted"
        submission_id = result["submission_id"]

        # Only staff grade
        response = await client.post(
            f"/api/submissions/{submission_id}/answers/{free_text_id}/grade",
            headers=student_headers,
            json={"points_earned": 6}
        )
        assert response.status_code == 403

        response = await client.post(
            f"/api/submissions/{submission_id}/answers/{free_text_id}/grade",
            headers=teacher_headers,
            json={"points_earned": 5}
        )
        assert response.status_code == 200
        graded = response.json()["data"]
        assert graded["score"] == 9
        assert graded["percentage"] == 90
        assert graded["status"] == "graded"
        assert graded["passed"] is True

        # Owner can read it back, another learner cannot
        response = await client.get(
            f"/api/assessments/{assessment['id']}/submissions/{submission_id}",
            headers=student_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["score"] == 9

        response = await client.get(
            f"/api/assessments/{assessment['id']}/submissions/{submission_id}",
            headers=auth_header("learner-2")
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_submit_unknown_assessment(self, client, student_headers):
        response = await client.post(
            "/api/assessments/missing/submit",
            headers=student_headers,
            json={"answers": []}
        )
        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "NOT_FOUND"
        assert body["details"] == {"kind": "assessment", "identity": "missing"}

    @pytest.mark.asyncio
    async def test_invalid_question_definition(self, client, teacher_headers):
        course = await create_course(client, teacher_headers)
        response = await client.post("/api/assessments", headers=teacher_headers, json={
            "course_id": course["id"],
            "title": "Broken quiz",
            "duration": 10,
            "questions": [{
                "question_text": "Pick one",
                "options": {"A": "x", "B": "y"},
                "correct_label": "C",
            }],
        })
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestProgressFlow:

    @pytest.mark.asyncio
    async def test_complete_sections(self, client, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers, sections=4)
        first, second = course["sections"][0]["id"], course["sections"][1]["id"]

        response = await client.post(
            f"/api/courses/{course['id']}/assignments",
            headers=teacher_headers,
            json={"learner_id": "learner-1"}
        )
        assert response.status_code == 201

        response = await client.post(
            f"/api/courses/{course['id']}/assignments",
            headers=teacher_headers,
            json={"learner_id": "learner-1"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["created"] is False

        for section_id, elapsed in ((first, 100), (first, 50), (second, 10)):
            response = await client.post(
                f"/api/progress/sections/{section_id}/complete",
                headers=student_headers,
                json={"course_id": course["id"], "time_spent_seconds": elapsed}
            )
            assert response.status_code == 200

        data = response.json()["data"]
        assert data["course_progress"]["progress_percentage"] == 50

        response = await client.get(f"/api/progress/learner-1/courses/{course['id']}", headers=student_headers)
        records = {r["section_id"]: r for r in response.json()["data"]}
        assert records[first]["time_spent_seconds"] == 150
        assert records[second]["time_spent_seconds"] == 10

        response = await client.get("/api/learners/learner-1/courses", headers=student_headers)
        listed = response.json()["data"]["courses"]
        assert len(listed) == 1
        assert listed[0]["progress"] == 50
        assert listed[0]["status"] == "in-progress"

    @pytest.mark.asyncio
    async def test_negative_time_is_rejected(self, client, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers)
        response = await client.post(
            f"/api/progress/sections/{course['sections'][0]['id']}/complete",
            headers=student_headers,
            json={"course_id": course["id"], "time_spent_seconds": -5}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_section(self, client, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers)
        response = await client.post(
            "/api/progress/sections/missing/complete",
            headers=student_headers,
            json={"course_id": course["id"]}
        )
        assert response.status_code == 404
        assert response.json()["details"]["kind"] == "section"


class TestCourseAuthoring:

    @pytest.mark.asyncio
    async def test_add_section(self, client, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers)

        response = await client.post(
            f"/api/courses/{course['id']}/sections",
            headers=student_headers,
            json={"title": "Sneaky section"}
        )
        assert response.status_code == 403

        response = await client.post(
            f"/api/courses/{course['id']}/sections",
            headers=teacher_headers,
            json={"title": "Part 3"}
        )
        assert response.status_code == 201
        section = response.json()["data"]
        assert section["course_id"] == course["id"]
        assert section["order_index"] == 3

        response = await client.get(f"/api/courses/{course['id']}", headers=student_headers)
        assert len(response.json()["data"]["sections"]) == 3

    @pytest.mark.asyncio
    async def test_add_section_to_unknown_course(self, client, teacher_headers):
        response = await client.post("/api/courses/missing/sections", headers=teacher_headers, json={"title": "x"})
        assert response.status_code == 404
        assert response.json()["details"]["kind"] == "course"

    @pytest.mark.asyncio
    async def test_list_assessments_by_course(self, client, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers)
        other = await create_course(client, teacher_headers)
        assessment = await create_assessment(client, teacher_headers, course["id"])
        await create_assessment(client, teacher_headers, other["id"])

        response = await client.get("/api/assessments", params={"course_id": course["id"]}, headers=student_headers)
        assert response.status_code == 200
        listed = response.json()["data"]
        assert [a["id"] for a in listed] == [assessment["id"]]
        assert listed[0]["total_points"] == 10

    @pytest.mark.asyncio
    async def test_list_assessments_requires_course(self, client, student_headers):
        response = await client.get("/api/assessments", headers=student_headers)
        assert response.status_code == 422


class TestStoreUnavailable:

    @pytest.mark.asyncio
    async def test_progress_summary_returns_503(self, client, session_factory, teacher_headers, student_headers):
        course = await create_course(client, teacher_headers)

        async def failing_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        async def broken_get_db():
            async with session_factory() as session:
                session.execute = failing_execute
                yield session

        app.dependency_overrides[get_db] = broken_get_db

        response = await client.get(f"/api/progress/learner-1/courses/{course['id']}/summary", headers=student_headers)
        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "STORE_FAILURE"
