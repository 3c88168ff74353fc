"""Pydantic request/response models for quiz submission and review."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from stemquiz.schemas import CamelModel


class SubmitRequest(CamelModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    time_taken: float = Field(ge=0)


class EarnedBadgeItem(CamelModel):
    id: str
    title: str
    description: str
    rarity: str
    xp: int
    earned_at: datetime


class SubmitResponse(CamelModel):
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
    badges_earned: list[EarnedBadgeItem] = []


class ReviewResponse(CamelModel):
    quiz_id: str
    subject: str
    score: int
    questions_correct: int
    questions_total: int
    time_taken: float
    xp_earned: int
    completed_at: datetime | None
    results: list[dict[str, Any]]


class PendingAttemptItem(CamelModel):
    quiz_id: str
    claimed_at: datetime
    review_url: str


class PendingAttemptsResponse(CamelModel):
    attempts: list[PendingAttemptItem]
    total: int


class AttemptSummaryItem(CamelModel):
    quiz_id: str
    quiz_title: str | None = None
    subject: str
    score: int
    questions_correct: int
    questions_total: int
    time_taken: float
    xp_earned: int
    completed_at: datetime | None


class AttemptHistoryResponse(CamelModel):
    completed_quiz_ids: list[str]
    recent: list[AttemptSummaryItem]
    total: int
