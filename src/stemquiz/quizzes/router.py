"""Quiz submission, review and attempt history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.auth.dependencies import get_current_user
from stemquiz.config import get_settings
from stemquiz.database import get_session
from stemquiz.db.models import User
from stemquiz.dependencies import get_redis_dep
from stemquiz.progression.activity import RECENT_ATTEMPTS, completed_quiz_ids, count_completed, recent_attempts
from stemquiz.quizzes.schemas import (
    AttemptHistoryResponse,
    AttemptSummaryItem,
    EarnedBadgeItem,
    PendingAttemptItem,
    PendingAttemptsResponse,
    ReviewResponse,
    SubmitRequest,
    SubmitResponse,
)
from stemquiz.quizzes.scoring import QuizSubmissionService

router = APIRouter(prefix="/api/v1", tags=["Quizzes"])


def _review_url(quiz_id: str) -> str:
    return f"/api/v1/quizzes/{quiz_id}/review"


@router.post("/quizzes/{quiz_id}/submit", response_model=SubmitResponse)
async def submit_quiz(
    quiz_id: str,
    body: SubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
) -> SubmitResponse:
    """Grade a quiz and record the result. Each quiz can be submitted once."""
    user_id = user.id
    service = QuizSubmissionService(db, redis, initial_freezes=get_settings().initial_streak_freezes)
    result = await service.submit(user_id, quiz_id, body.answers, body.time_taken)
    return SubmitResponse(
        quiz_id=result.quiz_id,
        score=result.score,
        questions_correct=result.questions_correct,
        questions_total=result.questions_total,
        time_taken=result.time_taken,
        results=result.results,
        xp_earned=result.xp_earned,
        new_level=result.new_level,
        current_streak=result.current_streak,
        total_xp=result.total_xp,
        multiplier=result.multiplier,
        badges_earned=[EarnedBadgeItem(**b.to_dict()) for b in result.badges],
    )


@router.get("/quizzes/{quiz_id}/review", response_model=ReviewResponse)
async def review_quiz(
    quiz_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ReviewResponse:
    """Return the stored per-question results of the user's finalized attempt."""
    attempt = await QuizSubmissionService(db).get_review(user.id, quiz_id)
    return ReviewResponse(
        quiz_id=attempt.quiz_id,
        subject=attempt.subject,
        score=attempt.score,
        questions_correct=attempt.questions_correct,
        questions_total=attempt.questions_total,
        time_taken=attempt.time_taken,
        xp_earned=attempt.xp_earned,
        completed_at=attempt.completed_at,
        results=attempt.results,
    )


@router.get("/users/me/quiz-attempts/pending", response_model=PendingAttemptsResponse)
async def pending_attempts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PendingAttemptsResponse:
    """Attempts that were claimed but never finalized (shown as in review)."""
    claims = await QuizSubmissionService(db).list_pending_claims(user.id)
    return PendingAttemptsResponse(
        attempts=[
            PendingAttemptItem(quiz_id=c.quiz_id, claimed_at=c.claimed_at, review_url=_review_url(c.quiz_id))
            for c in claims
        ],
        total=len(claims),
    )


@router.get("/users/me/quiz-attempts", response_model=AttemptHistoryResponse)
async def attempt_history(
    limit: int = Query(RECENT_ATTEMPTS, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AttemptHistoryResponse:
    """Finished quizzes: every completed quiz id plus the latest attempts."""
    return AttemptHistoryResponse(
        completed_quiz_ids=await completed_quiz_ids(db, user.id),
        recent=[AttemptSummaryItem(**a) for a in await recent_attempts(db, user.id, limit)],
        total=await count_completed(db, user.id),
    )
