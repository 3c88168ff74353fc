"""ORM models.

One row per user for the progress ledger and for the streak state; quiz
attempts, subject progress, daily activity, streak milestones and
achievements are child rows whose UNIQUE constraints carry the exactly-once
guarantees.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stemquiz.db.base import Base, BigIntPK, JSONType


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Authenticated identity. Accounts are managed by the auth service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


# ---------------------------------------------------------------------------
# Question bank (read-only for the scoring core)
# ---------------------------------------------------------------------------


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    subject: Mapped[str] = mapped_column(String(32), nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    question_links: Mapped[list[QuizQuestion]] = relationship(
        "QuizQuestion",
        order_by="QuizQuestion.position",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(String(32), nullable=False)
    # Legacy free-text questions store the answer here instead of on a choice
    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    choices: Mapped[list[QuestionChoice]] = relationship(
        "QuestionChoice",
        order_by="QuestionChoice.position",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class QuizQuestion(Base):
    """Ordered link between a quiz and its questions."""

    __tablename__ = "quiz_questions"

    quiz_id: Mapped[str] = mapped_column(String(64), ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True)
    question_id: Mapped[str] = mapped_column(String(64), ForeignKey("questions.id"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    question: Mapped[Question] = relationship("Question", lazy="selectin")


class QuestionChoice(Base):
    __tablename__ = "question_choices"
    __table_args__ = (
        UniqueConstraint("question_id", "choice_key", name="uq_question_choices_question_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    question_id: Mapped[str] = mapped_column(String(64), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    choice_key: Mapped[str] = mapped_column(String(64), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ---------------------------------------------------------------------------
# Progress ledger
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Denormalized per-user aggregates, one row per user."""

    __tablename__ = "user_progress"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    total_questions_attempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_questions_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_quizzes_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_time_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    subjects: Mapped[list[SubjectProgress]] = relationship(
        "SubjectProgress",
        order_by="SubjectProgress.subject",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class SubjectProgress(Base):
    __tablename__ = "subject_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "subject", name="uq_subject_progress_user_subject"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_progress.user_id", ondelete="CASCADE"), nullable=False
    )
    subject: Mapped[str] = mapped_column(String(32), nullable=False)
    questions_attempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quizzes_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    best_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class QuizAttempt(Base):
    """One attempt per (user, quiz). UNIQUE(user_id, quiz_id) is the claim guard.

    Lifecycle: inserted with ``claimed=True`` (placeholder, score 0), then
    finalized in place by the ledger (``claimed=False``, ``completed_at`` set).
    """

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", name="uq_quiz_attempts_user_quiz"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_taken: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    questions_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    results: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DailyActivity(Base):
    """Per-user totals for one UTC day, written in the same transaction as the XP they record."""

    __tablename__ = "daily_activity"
    __table_args__ = (
        UniqueConstraint("user_id", "activity_date", name="uq_daily_activity_user_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_progress.user_id", ondelete="CASCADE"), nullable=False
    )
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    quizzes_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_answered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_gained: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class XPLedger(Base):
    """Immutable XP transaction log with idempotency key."""

    __tablename__ = "xp_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


class UserStreak(Base):
    """Daily activity streak state. Mutated only by progression.streaks.update_streak."""

    __tablename__ = "user_streaks"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    freezes_available: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    freeze_used_today: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    current_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0, server_default="1.0")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    milestones: Mapped[list[StreakMilestone]] = relationship(
        "StreakMilestone",
        order_by="StreakMilestone.days",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class StreakMilestone(Base):
    """Reached streak milestone. UNIQUE(user_id, days); rows are never removed."""

    __tablename__ = "streak_milestones"
    __table_args__ = (
        UniqueConstraint("user_id", "days", name="uq_streak_milestones_user_days"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_streaks.user_id", ondelete="CASCADE"), nullable=False
    )
    days: Mapped[int] = mapped_column(Integer, nullable=False)
    reached_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reward_xp: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_badge: Mapped[str] = mapped_column(String(48), nullable=False)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Badges earned by users. UNIQUE(user_id, achievement_type)."""

    __tablename__ = "achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_type", name="uq_achievements_user_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_type: Mapped[str] = mapped_column(String(48), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    quiz_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
