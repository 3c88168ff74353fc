"""Pure grading of submitted answers against a quiz."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stemquiz.exceptions import GradingInconsistency
from stemquiz.progression.ledger import score_percentage
from stemquiz.quizzes.repository import QuestionView, QuizView


@dataclass(frozen=True)
class GradeResult:
    questions_correct: int
    questions_total: int
    score: int
    results: list[dict[str, Any]] = field(default_factory=list)


def _normalize(value: Any) -> str:  # noqa: ANN401
    return str(value).strip()


def is_correct_answer(question: QuestionView, answer: Any) -> bool:  # noqa: ANN401
    """Accept the correct choice by text or by id, or the free-text answer."""
    if answer is None:
        return False
    submitted = _normalize(answer)
    if not submitted:
        return False
    if question.correct_answer and submitted == _normalize(question.correct_answer):
        return True
    return any(
        choice.is_correct and submitted in (_normalize(choice.text), _normalize(choice.id))
        for choice in question.choices
    )


def grade_quiz(quiz: QuizView, answers: dict[str, Any]) -> GradeResult:
    """Grade every question of the quiz. Unanswered questions count as incorrect.

    Raises GradingInconsistency if the quiz has no questions.
    """
    if not quiz.questions:
        raise GradingInconsistency(f"Quiz {quiz.id} has no questions")

    correct = 0
    results: list[dict[str, Any]] = []
    for question in quiz.questions:
        answer = answers.get(question.id)
        ok = is_correct_answer(question, answer)
        if ok:
            correct += 1
        results.append({
            "questionId": question.id,
            "userAnswer": answer,
            "correctAnswer": question.correct_answer_text,
            "isCorrect": ok,
            "explanation": question.explanation,
        })

    total = len(quiz.questions)
    return GradeResult(
        questions_correct=correct,
        questions_total=total,
        score=score_percentage(correct, total),
        results=results,
    )
