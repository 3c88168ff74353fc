"""Read-only quiz lookup used by the scoring flow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.db.models import Question, Quiz


@dataclass(frozen=True)
class ChoiceView:
    id: str
    text: str
    is_correct: bool


@dataclass(frozen=True)
class QuestionView:
    id: str
    title: str
    text: str
    subject: str
    choices: tuple[ChoiceView, ...] = ()
    correct_answer: str | None = None
    explanation: str | None = None

    @property
    def correct_answer_text(self) -> str | None:
        """Answer shown to the user: the stored free-text answer, else the first correct choice."""
        if self.correct_answer:
            return self.correct_answer
        for choice in self.choices:
            if choice.is_correct:
                return choice.text
        return None


@dataclass(frozen=True)
class QuizView:
    id: str
    title: str
    subject: str
    questions: tuple[QuestionView, ...] = ()


class QuizCatalog(Protocol):
    async def get_quiz_with_questions(self, quiz_id: str) -> QuizView | None: ...


def _question_view(question: Question) -> QuestionView:
    return QuestionView(
        id=question.id,
        title=question.title,
        text=question.question_text,
        subject=question.subject,
        choices=tuple(
            ChoiceView(id=c.choice_key, text=c.text, is_correct=c.is_correct)
            for c in question.choices
        ),
        correct_answer=question.correct_answer,
        explanation=question.explanation,
    )


class SqlQuizCatalog:
    """QuizCatalog backed by the quizzes/questions tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_quiz_with_questions(self, quiz_id: str) -> QuizView | None:
        result = await self.db.execute(
            select(Quiz).where(Quiz.id == quiz_id, Quiz.is_published.is_(True))
        )
        quiz = result.scalar_one_or_none()
        if quiz is None:
            return None
        return QuizView(
            id=quiz.id,
            title=quiz.title,
            subject=quiz.subject,
            questions=tuple(_question_view(link.question) for link in quiz.question_links),
        )
