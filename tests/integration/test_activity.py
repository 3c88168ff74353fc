"""Attempt history, daily activity and activity feed reads."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy import select

from stemquiz.db.models import DailyActivity
from stemquiz.progression.activity import (
    activity_feed,
    completed_quiz_ids,
    count_completed,
    daily_activity,
    recent_attempts,
)
from stemquiz.progression.catalog import BADGE_CATALOG
from stemquiz.progression.ledger import get_progress
from stemquiz.quizzes.scoring import QuizSubmissionService
from tests.factories import answers_for, create_quiz

MONDAY = datetime(2026, 3, 9, 12, 0, 0, tzinfo=timezone.utc)
TUESDAY = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def two_days(db_session, user):
    """3/4 on algebra Monday, 2/2 on physics Tuesday, chemistry claimed but never finalized."""
    await create_quiz(db_session, "algebra-1", subject="Math", question_count=4)
    await create_quiz(db_session, "physics-1", subject="Physics", question_count=2)
    service = QuizSubmissionService(db_session)
    await service.submit(user.id, "algebra-1", answers_for("algebra-1", 4, 3), 200, now=MONDAY)
    await service.submit(user.id, "physics-1", answers_for("physics-1", 2, 2), 300, now=TUESDAY)
    await service.claim(user.id, "chem-1", TUESDAY)
    return user


class TestDailyActivityRecording:
    @pytest.mark.asyncio
    async def test_quiz_and_badge_xp_land_on_their_day(self, db_session, two_days):
        rows = (await db_session.execute(
            select(DailyActivity).order_by(DailyActivity.activity_date)
        )).scalars().all()

        assert [r.activity_date for r in rows] == [date(2026, 3, 9), date(2026, 3, 10)]
        monday, tuesday = rows
        assert (monday.quizzes_completed, monday.questions_answered, monday.questions_correct) == (1, 4, 3)
        assert monday.time_spent == 200
        assert monday.xp_gained == 130 + BADGE_CATALOG["first_quiz"].xp
        assert (tuesday.quizzes_completed, tuesday.questions_answered, tuesday.questions_correct) == (1, 2, 2)
        assert tuesday.xp_gained == 70 + BADGE_CATALOG["perfect_score"].xp

    @pytest.mark.asyncio
    async def test_daily_xp_sums_to_total_xp(self, db_session, two_days):
        rows = (await db_session.execute(select(DailyActivity))).scalars().all()
        progress = await get_progress(db_session, two_days.id)
        assert sum(r.xp_gained for r in rows) == progress.total_xp


class TestHistoryReads:
    @pytest.mark.asyncio
    async def test_completed_ids_skip_claims_in_review(self, db_session, two_days):
        assert await completed_quiz_ids(db_session, two_days.id) == ["algebra-1", "physics-1"]
        assert await count_completed(db_session, two_days.id) == 2

    @pytest.mark.asyncio
    async def test_recent_attempts_newest_first(self, db_session, two_days):
        attempts = await recent_attempts(db_session, two_days.id)
        assert [a["quiz_id"] for a in attempts] == ["physics-1", "algebra-1"]
        assert attempts[0]["quiz_title"] == "Physics quiz physics-1"
        assert attempts[0]["score"] == 100
        assert attempts[1]["questions_correct"] == 3

        assert len(await recent_attempts(db_session, two_days.id, limit=1)) == 1

    @pytest.mark.asyncio
    async def test_daily_window(self, db_session, two_days):
        last_day = await daily_activity(db_session, two_days.id, days=1, now=TUESDAY)
        assert [d["activity_date"] for d in last_day] == [date(2026, 3, 10)]

        month = await daily_activity(db_session, two_days.id, now=TUESDAY)
        assert [d["activity_date"] for d in month] == [date(2026, 3, 9), date(2026, 3, 10)]
        assert month[0]["questions"] == 4

    @pytest.mark.asyncio
    async def test_feed_merges_quizzes_and_badges(self, db_session, two_days):
        feed = await activity_feed(db_session, two_days.id)

        assert [(item["type"], item.get("quiz_id") or item.get("badge_id")) for item in feed] == [
            ("quiz", "physics-1"),
            ("achievement", "perfect_score"),
            ("quiz", "algebra-1"),
            ("achievement", "first_quiz"),
        ]
        assert feed[0]["subtitle"] == "100%, 2/2 correct"
        assert feed[1]["title"] == BADGE_CATALOG["perfect_score"].title

    @pytest.mark.asyncio
    async def test_empty_history(self, db_session, user):
        assert await completed_quiz_ids(db_session, user.id) == []
        assert await daily_activity(db_session, user.id, now=TUESDAY) == []
        assert await activity_feed(db_session, user.id) == []
