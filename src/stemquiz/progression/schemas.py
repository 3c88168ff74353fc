"""Pydantic response models for progression endpoints."""

from __future__ import annotations

from datetime import date, datetime

from stemquiz.schemas import CamelModel


# --- Badges ---


class BadgeItem(CamelModel):
    id: str
    title: str
    description: str
    rarity: str
    xp: int
    category: str
    earned: bool = False
    earned_at: datetime | None = None


class BadgeStats(CamelModel):
    total: int
    earned: int
    percentage: int
    by_rarity: dict[str, int]


class UserBadgesResponse(CamelModel):
    earned: list[BadgeItem]
    locked: list[BadgeItem]
    stats: BadgeStats
    recently_earned: list[BadgeItem] = []


class BadgeCatalogResponse(CamelModel):
    badges: list[BadgeItem]
    total: int


class BadgeProgressItem(CamelModel):
    badge: BadgeItem
    current: int
    target: int
    percentage: int


class BadgeProgressResponse(CamelModel):
    progress: list[BadgeProgressItem]


# --- Progress ---


class LevelInfo(CamelModel):
    level: int
    title: str
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_title: str


class SubjectProgressItem(CamelModel):
    subject: str
    questions_attempted: int
    questions_correct: int
    quizzes_completed: int
    time_spent: float
    best_score: int
    average_score: float
    accuracy: int


class ProgressResponse(CamelModel):
    total_xp: int
    level: LevelInfo
    total_questions_attempted: int
    total_questions_correct: int
    total_quizzes_completed: int
    total_time_spent: float
    accuracy: int
    subjects: list[SubjectProgressItem]


# --- Streak ---


class StreakMilestoneItem(CamelModel):
    days: int
    reached_at: datetime
    reward_xp: int
    reward_badge: str


class StreakResponse(CamelModel):
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    freezes_available: int
    current_multiplier: float
    milestones: list[StreakMilestoneItem] = []
    next_milestone: int | None = None


# --- XP ---


class XPHistoryEntry(CamelModel):
    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


class XPHistoryResponse(CamelModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int


# --- Activity ---


class DailyActivityItem(CamelModel):
    activity_date: date
    quizzes_completed: int
    questions: int
    questions_correct: int
    xp: int
    time_spent: float


class DailyActivityResponse(CamelModel):
    days: list[DailyActivityItem]


class ActivityItem(CamelModel):
    type: str
    title: str
    subtitle: str | None = None
    time: datetime | None = None
    xp: int = 0
    quiz_id: str | None = None
    quiz_title: str | None = None
    badge_id: str | None = None


class ActivityFeedResponse(CamelModel):
    activities: list[ActivityItem]
