"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from stemquiz.schemas import CamelModel


class LeaderboardEntryResponse(CamelModel):
    rank: int
    user_id: str
    display_name: str
    total_xp: int
    level: int
    level_title: str
    quizzes_completed: int
    questions_correct: int
    accuracy: int
    is_current_user: bool = False


class LeaderboardResponse(CamelModel):
    entries: list[LeaderboardEntryResponse]
    total: int
    page: int
    per_page: int


class UserRankResponse(CamelModel):
    rank: int
    total_xp: int
    total: int
    percentile: float
