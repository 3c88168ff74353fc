"""Quiz scoring flow: claim exactly once, finalize, badges, failure handling."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from stemquiz.db.models import Achievement, QuizAttempt, XPLedger
from stemquiz.events import BADGE_EARNED_CHANNEL, LEVEL_UP_CHANNEL, STREAK_MILESTONE_CHANNEL
from stemquiz.exceptions import (
    AttemptNotFound,
    DuplicateSubmission,
    GradingInconsistency,
    PersistenceFailure,
    QuizNotFound,
)
from stemquiz.progression.ledger import get_progress
from stemquiz.quizzes.scoring import QuizSubmissionService, SubmissionResult, list_unfinalized_claims
from tests.factories import answers_for, create_quiz, create_streak

NOON = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class _ExplodingBadges:
    async def evaluate(self, user_id, context):
        raise RuntimeError("badge store unavailable")


class TestSubmitEndToEnd:
    """A learner on a 2-day streak scores 8/10 in 90 seconds."""

    @pytest.mark.asyncio
    async def test_scenario(self, db_session, user):
        await create_quiz(db_session, "algebra-1", question_count=10)
        await create_streak(db_session, user.id, current=2, last_activity=date(2026, 3, 9))

        service = QuizSubmissionService(db_session)
        result = await service.submit(user.id, "algebra-1", answers_for("algebra-1", 10, 8), 90, now=NOON)

        assert result.score == 80
        assert result.questions_correct == 8
        assert result.questions_total == 10
        assert result.time_taken == 90
        assert result.current_streak == 3
        assert result.multiplier == 1.1
        assert result.xp_earned == 88 + 100
        assert len(result.results) == 10
        assert {b.badge.id for b in result.badges} == {"first_quiz", "speed_demon", "streak_starter"}

        progress = await get_progress(db_session, user.id)
        # quiz XP + first_quiz 25 + speed_demon 100 + streak_starter 50
        assert progress.total_xp == 188 + 25 + 100 + 50
        assert progress.level == 4
        assert progress.total_quizzes_completed == 1

        with pytest.raises(DuplicateSubmission):
            await service.submit(user.id, "algebra-1", answers_for("algebra-1", 10, 10), 30, now=NOON)

        progress = await get_progress(db_session, user.id)
        assert progress.total_xp == 363
        assert progress.total_quizzes_completed == 1

    @pytest.mark.asyncio
    async def test_review_returns_stored_results(self, db_session, user):
        await create_quiz(db_session, "algebra-1", question_count=4)
        service = QuizSubmissionService(db_session)
        await service.submit(user.id, "algebra-1", answers_for("algebra-1", 4, 3), 200, now=NOON)

        attempt = await service.get_review(user.id, "algebra-1")
        assert attempt.score == 75
        assert [r["isCorrect"] for r in attempt.results] == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_review_without_attempt(self, db_session, user):
        with pytest.raises(AttemptNotFound) as exc_info:
            await QuizSubmissionService(db_session).get_review(user.id, "algebra-1")
        assert exc_info.value.in_review is False


class TestSubmitErrors:
    @pytest.mark.asyncio
    async def test_unknown_quiz(self, db_session, user):
        with pytest.raises(QuizNotFound):
            await QuizSubmissionService(db_session).submit(user.id, "nope", {}, 10, now=NOON)

    @pytest.mark.asyncio
    async def test_empty_quiz_is_rejected_before_claim(self, db_session, user):
        await create_quiz(db_session, "empty", question_count=0)
        with pytest.raises(GradingInconsistency):
            await QuizSubmissionService(db_session).submit(user.id, "empty", {}, 10, now=NOON)

        count = await db_session.execute(select(func.count()).select_from(QuizAttempt))
        assert count.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_finalize_failure_leaves_claim_in_review(self, db_session, user):
        user_id = user.id
        await create_quiz(db_session, "algebra-1", question_count=5)
        service = QuizSubmissionService(db_session)

        with patch("stemquiz.quizzes.scoring.apply_quiz_result", AsyncMock(side_effect=RuntimeError("disk full"))):
            with pytest.raises(PersistenceFailure) as exc_info:
                await service.submit(user_id, "algebra-1", answers_for("algebra-1", 5, 5), 60, now=NOON)

        error = exc_info.value
        assert error.stage == "finalize"
        assert error.retryable is False
        assert error.review_url == "/api/v1/quizzes/algebra-1/review"

        with pytest.raises(AttemptNotFound) as review_error:
            await service.get_review(user_id, "algebra-1")
        assert review_error.value.in_review is True
        assert review_error.value.code == "attempt_in_review"

        with pytest.raises(DuplicateSubmission):
            await service.submit(user_id, "algebra-1", answers_for("algebra-1", 5, 5), 60, now=NOON)

        assert await get_progress(db_session, user_id) is None
        pending = await service.list_pending_claims(user_id)
        assert [a.quiz_id for a in pending] == ["algebra-1"]

        stale = await list_unfinalized_claims(db_session, timedelta(minutes=15), now=NOON + timedelta(minutes=20))
        assert [a.quiz_id for a in stale] == ["algebra-1"]
        fresh = await list_unfinalized_claims(db_session, timedelta(minutes=15), now=NOON + timedelta(minutes=5))
        assert fresh == []

    @pytest.mark.asyncio
    async def test_badge_failure_is_not_fatal(self, db_session, user):
        user_id = user.id
        await create_quiz(db_session, "algebra-1", question_count=5)
        service = QuizSubmissionService(db_session, badges=_ExplodingBadges())

        result = await service.submit(user_id, "algebra-1", answers_for("algebra-1", 5, 5), 60, now=NOON)

        assert result.score == 100
        assert result.badges == []
        attempt = await service.get_review(user_id, "algebra-1")
        assert attempt.claimed is False


class TestExactlyOnce:
    """Concurrent submissions of the same quiz by the same user."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [2, 5])
    async def test_concurrent_submits(self, session_factory, db_session, user, k):
        await create_quiz(db_session, "algebra-1", question_count=10)
        answers = answers_for("algebra-1", 10, 8)

        async def submit_once():
            async with session_factory() as session:
                return await QuizSubmissionService(session).submit(user.id, "algebra-1", answers, 90, now=NOON)

        outcomes = await asyncio.gather(*(submit_once() for _ in range(k)), return_exceptions=True)

        successes = [o for o in outcomes if isinstance(o, SubmissionResult)]
        duplicates = [o for o in outcomes if isinstance(o, DuplicateSubmission)]
        assert len(successes) == 1
        assert len(duplicates) == k - 1

        attempts = (await db_session.execute(select(QuizAttempt))).scalars().all()
        assert len(attempts) == 1
        assert attempts[0].claimed is False

        quiz_credits = await db_session.execute(
            select(func.count()).select_from(XPLedger).where(XPLedger.source == "quiz")
        )
        assert quiz_credits.scalar_one() == 1


class TestEvents:
    @pytest.mark.asyncio
    async def test_progress_and_badge_events_published(self, db_session, user):
        await create_quiz(db_session, "algebra-1", question_count=10)
        await create_streak(db_session, user.id, current=2, last_activity=date(2026, 3, 9))
        redis = AsyncMock()

        await QuizSubmissionService(db_session, redis).submit(
            user.id, "algebra-1", answers_for("algebra-1", 10, 8), 90, now=NOON,
        )

        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert STREAK_MILESTONE_CHANNEL in channels
        assert LEVEL_UP_CHANNEL in channels
        assert channels.count(BADGE_EARNED_CHANNEL) == 3

    @pytest.mark.asyncio
    async def test_publish_failure_is_ignored(self, db_session, user):
        await create_quiz(db_session, "algebra-1", question_count=3)
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")

        result = await QuizSubmissionService(db_session, redis).submit(
            user.id, "algebra-1", answers_for("algebra-1", 3, 3), 30, now=NOON,
        )

        assert result.score == 100
        achievements = await db_session.execute(select(func.count()).select_from(Achievement))
        assert achievements.scalar_one() == 3  # first_quiz, perfect_score, speed_demon


class TestStartupReport:
    @pytest.mark.asyncio
    async def test_counts_only_stale_claims(self, session_factory, db_session, user):
        from stemquiz.main import report_unfinalized_claims

        now = datetime.now(timezone.utc)
        service = QuizSubmissionService(db_session)
        await service.claim(user.id, "algebra-1", now - timedelta(hours=1))
        await service.claim(user.id, "algebra-2", now)

        assert await report_unfinalized_claims(timedelta(minutes=15)) == 1
        assert await report_unfinalized_claims(timedelta(hours=2)) == 0
