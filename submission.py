"""
Quiz submission.

A submission writes three things: a history record, the user's counters and
the quiz's analytics. They are written in one unit of work so that either all
three become visible or none does.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from config import Config
from errors import NotFoundError, SubmissionFailedError, SubmissionTimeoutError, ValidationError
from grading import grade
from schemas import QuizHistory, SubmissionReceipt
from stores import Stores


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_timeout(exc: BaseException) -> bool:
    # pymongo errors expose a `timeout` flag for client-side deadline expiry
    return isinstance(exc, TimeoutError) or bool(getattr(exc, "timeout", False))


class SubmissionCoordinator:
    def __init__(self, stores: Stores, logger: Optional[logging.Logger] = None,
                 timeout: Optional[float] = None, clock: Callable[[], datetime] = _utcnow):
        self.stores = stores
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = timeout if timeout is not None else Config.STORE_TIMEOUT_SECONDS
        self.clock = clock

    def submit(self, quiz_id: str, user_id: str, answers: Optional[Sequence[Any]],
               time_taken: float = 0, timeout: Optional[float] = None) -> SubmissionReceipt:
        quiz = self.stores.quizzes.find_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("quiz", quiz_id)

        result = grade(quiz, answers)
        now = self.clock()
        record = QuizHistory(
            user_id=user_id,
            quiz_id=quiz_id,
            answers=result.answers,
            score=result.score,
            percentage=result.percentage,
            total_questions=result.total_questions,
            correct_answers=result.correct_answers,
            incorrect_answers=result.total_questions - result.correct_answers,
            time_taken=time_taken,
            passed=result.passed,
            completed_at=now,
        )

        unit_of_work = self.stores.unit_of_work
        unit = None
        try:
            unit = unit_of_work.begin(timeout if timeout is not None else self.timeout)
            history_id = self.stores.history.insert(record, unit)
            self.stores.users.atomic_increment(
                user_id, points=result.score, quizzes_taken=1, last_quiz_date=now, unit=unit,
            )
            self.stores.analytics.atomic_increment_and_recompute(quiz_id, result.percentage, unit)
            unit_of_work.commit(unit)
        except (NotFoundError, ValidationError):
            self._abort(unit)
            raise
        except Exception as exc:
            self._abort(unit)
            self.logger.exception("Submission of quiz %s by user %s failed", quiz_id, user_id)
            if _is_timeout(exc):
                raise SubmissionTimeoutError() from exc
            raise SubmissionFailedError() from exc
        except BaseException:
            self._abort(unit)
            raise

        self.logger.info(
            "Quiz %s submitted by user %s: score=%s percentage=%.1f passed=%s",
            quiz_id, user_id, result.score, result.percentage, result.passed,
        )
        return SubmissionReceipt(
            history_id=history_id,
            score=result.score,
            percentage=result.percentage,
            passed=result.passed,
        )

    def _abort(self, unit: Any) -> None:
        if unit is None:
            return
        try:
            self.stores.unit_of_work.abort(unit)
        except Exception:
            self.logger.exception("Aborting unit of work failed")
