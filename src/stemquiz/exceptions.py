"""Domain errors raised by the scoring and progression core.

Each error carries the HTTP status it maps to; the global handler in
``stemquiz.middleware.error_handler`` renders them as ``{"message", "code"}``.
"""

from __future__ import annotations


class StemQuizError(Exception):
    """Base class for errors that are safe to show to the client."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message()
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Request could not be processed"

    def to_payload(self) -> dict[str, object]:
        return {"message": self.message, "code": self.code}


class DuplicateSubmission(StemQuizError):
    """The user already has an attempt (claimed or finalized) for this quiz."""

    status_code = 400
    code = "duplicate_submission"

    def __init__(self, quiz_id: str) -> None:
        self.quiz_id = quiz_id
        super().__init__("already completed")


class QuizNotFound(StemQuizError):
    status_code = 404
    code = "quiz_not_found"

    def __init__(self, quiz_id: str) -> None:
        self.quiz_id = quiz_id
        super().__init__("Quiz not found")


class UserProgressNotFound(StemQuizError):
    status_code = 404
    code = "progress_not_found"

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__("No progress recorded for this user")


class AttemptNotFound(StemQuizError):
    """No finalized attempt exists. ``in_review`` is set when only a claim exists."""

    status_code = 404
    code = "attempt_not_found"

    def __init__(self, quiz_id: str, *, in_review: bool = False) -> None:
        self.quiz_id = quiz_id
        self.in_review = in_review
        if in_review:
            self.code = "attempt_in_review"
            super().__init__("Your attempt is still being scored")
        else:
            super().__init__("You haven't completed this quiz yet")


class GradingInconsistency(StemQuizError):
    """The quiz cannot be graded (e.g. it has no questions)."""

    status_code = 500
    code = "grading_inconsistency"


class PersistenceFailure(StemQuizError):
    """Storage failed during the claim or finalize stage of a submission.

    A claim-stage failure has no side effects. A finalize-stage failure leaves
    the attempt claimed; the client must poll the review endpoint instead of
    resubmitting, so ``retryable`` is always False here.
    """

    status_code = 500
    code = "persistence_failure"
    retryable = False

    def __init__(self, stage: str, quiz_id: str) -> None:
        self.stage = stage
        self.quiz_id = quiz_id
        self.review_url = f"/api/v1/quizzes/{quiz_id}/review" if stage == "finalize" else None
        if stage == "finalize":
            message = "Your submission was received but scoring did not complete; check the review page"
        else:
            message = "Could not record your submission, nothing was saved"
        super().__init__(message)

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["stage"] = self.stage
        if self.review_url:
            payload["review_url"] = self.review_url
        return payload
