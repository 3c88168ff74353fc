"""HTTP tests for quiz submission, review, pending attempts and attempt history."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from stemquiz.auth.jwt import create_access_token
from stemquiz.quizzes.scoring import QuizSubmissionService
from tests.factories import answers_for, create_quiz, create_user


class TestSubmitEndpoint:
    @pytest.mark.asyncio
    async def test_submit_returns_camel_case_result(self, authed_client: AsyncClient, db_session):
        await create_quiz(db_session, "algebra-1", question_count=10)

        response = await authed_client.post(
            "/api/v1/quizzes/algebra-1/submit",
            json={"answers": answers_for("algebra-1", 10, 8), "timeTaken": 90},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 80
        assert data["questionsCorrect"] == 8
        assert data["questionsTotal"] == 10
        assert data["timeTaken"] == 90
        assert data["currentStreak"] == 1
        assert data["xpEarned"] > 0
        assert data["newLevel"] >= 2
        assert len(data["results"]) == 10
        assert set(data["results"][0]) == {"questionId", "userAnswer", "correctAnswer", "isCorrect", "explanation"}
        assert "speed_demon" in {b["id"] for b in data["badgesEarned"]}

    @pytest.mark.asyncio
    async def test_duplicate_submission(self, authed_client: AsyncClient, db_session):
        await create_quiz(db_session, "algebra-1", question_count=3)
        body = {"answers": answers_for("algebra-1", 3, 3), "timeTaken": 45}

        first = await authed_client.post("/api/v1/quizzes/algebra-1/submit", json=body)
        second = await authed_client.post("/api/v1/quizzes/algebra-1/submit", json=body)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json() == {"message": "already completed", "code": "duplicate_submission"}

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, authed_client: AsyncClient):
        response = await authed_client.post("/api/v1/quizzes/missing/submit", json={"answers": {}, "timeTaken": 5})
        assert response.status_code == 404
        assert response.json()["code"] == "quiz_not_found"

    @pytest.mark.asyncio
    async def test_negative_time_rejected(self, authed_client: AsyncClient, db_session):
        await create_quiz(db_session, "algebra-1", question_count=3)
        response = await authed_client.post("/api/v1/quizzes/algebra-1/submit", json={"answers": {}, "timeTaken": -1})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/v1/quizzes/algebra-1/submit", json={"answers": {}, "timeTaken": 5})
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/quizzes/algebra-1/submit",
            json={"answers": {}, "timeTaken": 5},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_banned_user(self, client: AsyncClient, db_session):
        banned = await create_user(db_session, "mallory", is_banned=True)
        response = await client.get(
            "/api/v1/users/me/badges",
            headers={"Authorization": f"Bearer {create_access_token(banned.id, banned.username)}"},
        )
        assert response.status_code == 403


class TestReviewEndpoint:
    @pytest.mark.asyncio
    async def test_review_before_submit(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/quizzes/algebra-1/review")
        assert response.status_code == 404
        assert response.json()["code"] == "attempt_not_found"

    @pytest.mark.asyncio
    async def test_review_after_submit(self, authed_client: AsyncClient, db_session):
        await create_quiz(db_session, "algebra-1", question_count=4)
        await authed_client.post(
            "/api/v1/quizzes/algebra-1/submit",
            json={"answers": answers_for("algebra-1", 4, 3), "timeTaken": 200},
        )

        response = await authed_client.get("/api/v1/quizzes/algebra-1/review")

        assert response.status_code == 200
        data = response.json()
        assert data["quizId"] == "algebra-1"
        assert data["score"] == 75
        assert data["subject"] == "Math"
        assert data["completedAt"] is not None
        assert [r["isCorrect"] for r in data["results"]] == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_pending_attempts_empty(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/users/me/quiz-attempts/pending")
        assert response.status_code == 200
        assert response.json() == {"attempts": [], "total": 0}


class TestAttemptHistoryEndpoint:
    @pytest.mark.asyncio
    async def test_history_lists_finished_quizzes_only(self, authed_client: AsyncClient, db_session, user):
        await create_quiz(db_session, "algebra-1", question_count=4)
        await authed_client.post(
            "/api/v1/quizzes/algebra-1/submit",
            json={"answers": answers_for("algebra-1", 4, 3), "timeTaken": 200},
        )
        await QuizSubmissionService(db_session).claim(user.id, "geometry-1")

        response = await authed_client.get("/api/v1/users/me/quiz-attempts")

        assert response.status_code == 200
        data = response.json()
        assert data["completedQuizIds"] == ["algebra-1"]
        assert data["total"] == 1
        (attempt,) = data["recent"]
        assert attempt["quizTitle"] == "Math quiz algebra-1"
        assert attempt["score"] == 75
        assert attempt["completedAt"] is not None

    @pytest.mark.asyncio
    async def test_history_empty(self, authed_client: AsyncClient):
        data = (await authed_client.get("/api/v1/users/me/quiz-attempts")).json()
        assert data == {"completedQuizIds": [], "recent": [], "total": 0}
