"""Quiz scoring flow: claim, grade, finalize, then evaluate badges.

Per (user, quiz) an attempt moves NotStarted -> Claimed -> Finalized. The
claim is a single conditional insert on UNIQUE(user_id, quiz_id) committed
on its own, so concurrent submissions of the same quiz race on the database
constraint and exactly one wins. Finalize is one transaction; if it fails
the attempt stays Claimed and is reported as in review rather than being
released for another try.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.db.models import QuizAttempt
from stemquiz.db.upsert import insert_for
from stemquiz.events import LEVEL_UP_CHANNEL, STREAK_MILESTONE_CHANNEL, publish_event
from stemquiz.exceptions import (
    AttemptNotFound,
    DuplicateSubmission,
    GradingInconsistency,
    PersistenceFailure,
    QuizNotFound,
)
from stemquiz.progression.badge_engine import AwardedBadge, BadgeContext, BadgeEngine
from stemquiz.progression.ledger import ProgressUpdate, QuizResult, apply_quiz_result
from stemquiz.progression.levels import level_title
from stemquiz.quizzes.grading import GradeResult, grade_quiz
from stemquiz.quizzes.repository import QuizCatalog, QuizView, SqlQuizCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    quiz_id: str
    score: int
    questions_correct: int
    questions_total: int
    time_taken: float
    results: list[dict[str, Any]]
    xp_earned: int
    new_level: int
    current_streak: int
    total_xp: int
    multiplier: float
    badges: list[AwardedBadge] = field(default_factory=list)


class QuizSubmissionService:
    """Runs one submission end to end against a single session."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
        quizzes: QuizCatalog | None = None,
        badges: BadgeEngine | None = None,
        *,
        initial_freezes: int = 1,
    ) -> None:
        self.db = db
        self.redis = redis
        self.quizzes = quizzes or SqlQuizCatalog(db)
        self.badges = badges or BadgeEngine(db, redis)
        self.initial_freezes = initial_freezes

    async def submit(
        self,
        user_id: int,
        quiz_id: str,
        answers: dict[str, Any],
        time_taken: float,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """Score a quiz submission exactly once.

        Raises:
            QuizNotFound: no published quiz with this id.
            GradingInconsistency: the quiz has no questions (nothing is claimed).
            DuplicateSubmission: the user already claimed or completed this quiz.
            PersistenceFailure: storage failed during claim or finalize.
        """
        now = now or datetime.now(timezone.utc)

        quiz = await self.quizzes.get_quiz_with_questions(quiz_id)
        if quiz is None:
            raise QuizNotFound(quiz_id)
        if not quiz.questions:
            raise GradingInconsistency(f"Quiz {quiz_id} has no questions")

        await self.claim(user_id, quiz_id, now)

        try:
            grade = grade_quiz(quiz, answers)
            update = await apply_quiz_result(
                self.db,
                user_id,
                QuizResult(
                    quiz_id=quiz_id,
                    subject=quiz.subject,
                    questions_correct=grade.questions_correct,
                    questions_total=grade.questions_total,
                    time_taken=time_taken,
                    results=grade.results,
                ),
                now=now,
                initial_freezes=self.initial_freezes,
            )
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.error(
                "Quiz %s claimed by user %s but not finalized; attempt left in review",
                quiz_id,
                user_id,
                exc_info=True,
            )
            raise PersistenceFailure("finalize", quiz_id) from exc

        await self._publish_progress(user_id, update)
        badges = await self._evaluate_badges(user_id, quiz, grade, time_taken, now)

        return SubmissionResult(
            quiz_id=quiz_id,
            score=update.score,
            questions_correct=grade.questions_correct,
            questions_total=grade.questions_total,
            time_taken=time_taken,
            results=grade.results,
            xp_earned=update.xp_earned,
            new_level=update.new_level,
            current_streak=update.current_streak,
            total_xp=update.total_xp,
            multiplier=update.multiplier,
            badges=badges,
        )

    async def claim(self, user_id: int, quiz_id: str, now: datetime | None = None) -> int:
        """Reserve the (user, quiz) slot with one conditional insert and commit it.

        Returns the attempt id. Raises DuplicateSubmission if the slot is taken.
        """
        now = now or datetime.now(timezone.utc)
        try:
            result = await self.db.execute(
                insert_for(self.db, QuizAttempt)
                .values(
                    user_id=user_id,
                    quiz_id=quiz_id,
                    subject="pending",
                    score=0,
                    time_taken=0.0,
                    questions_correct=0,
                    questions_total=0,
                    xp_earned=0,
                    results=[],
                    claimed=True,
                    claimed_at=now,
                )
                .on_conflict_do_nothing(index_elements=["user_id", "quiz_id"])
                .returning(QuizAttempt.id)
            )
            attempt_id = result.scalar_one_or_none()
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Could not claim quiz %s for user %s", quiz_id, user_id, exc_info=True)
            raise PersistenceFailure("claim", quiz_id) from exc

        if attempt_id is None:
            logger.info("Duplicate submission of quiz %s by user %s", quiz_id, user_id)
            raise DuplicateSubmission(quiz_id)
        return attempt_id

    async def get_review(self, user_id: int, quiz_id: str) -> QuizAttempt:
        """Return the finalized attempt. An unfinalized claim is reported as in review."""
        result = await self.db.execute(
            select(QuizAttempt).where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
        )
        attempt = result.scalar_one_or_none()
        if attempt is None:
            raise AttemptNotFound(quiz_id)
        if attempt.claimed:
            raise AttemptNotFound(quiz_id, in_review=True)
        return attempt

    async def list_pending_claims(self, user_id: int) -> list[QuizAttempt]:
        result = await self.db.execute(
            select(QuizAttempt)
            .where(QuizAttempt.user_id == user_id, QuizAttempt.claimed.is_(True))
            .order_by(QuizAttempt.claimed_at)
        )
        return list(result.scalars().all())

    async def _publish_progress(self, user_id: int, update: ProgressUpdate) -> None:
        for milestone in update.new_milestones:
            await publish_event(self.redis, STREAK_MILESTONE_CHANNEL, {
                "user_id": user_id,
                "days": milestone.days,
                "reward_xp": milestone.reward_xp,
                "badge_id": milestone.badge_id,
            })
        if update.new_level > update.previous_level:
            await publish_event(self.redis, LEVEL_UP_CHANNEL, {
                "user_id": user_id,
                "old_level": update.previous_level,
                "new_level": update.new_level,
                "title": level_title(update.new_level),
            })

    async def _evaluate_badges(
        self,
        user_id: int,
        quiz: QuizView,
        grade: GradeResult,
        time_taken: float,
        now: datetime,
    ) -> list[AwardedBadge]:
        context = BadgeContext(
            quiz_completed=True,
            score=grade.score,
            time_taken=time_taken,
            subject=quiz.subject,
            quiz_id=quiz.id,
            occurred_at=now,
        )
        try:
            return await self.badges.evaluate(user_id, context)
        except Exception:
            await self.db.rollback()
            logger.warning("Badge evaluation failed for user %s after quiz %s", user_id, quiz.id, exc_info=True)
            return []


async def list_unfinalized_claims(
    db: AsyncSession,
    older_than: timedelta,
    now: datetime | None = None,
) -> list[QuizAttempt]:
    """Claims still unfinalized after ``older_than``, oldest first (for reconciliation)."""
    cutoff = (now or datetime.now(timezone.utc)) - older_than
    result = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.claimed.is_(True), QuizAttempt.claimed_at < cutoff)
        .order_by(QuizAttempt.claimed_at)
    )
    return list(result.scalars().all())
