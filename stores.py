"""
Storage capabilities used by the submission and history services.

Writes that belong to one submission take a unit-of-work handle obtained from
UnitOfWork.begin(); they only become visible once that handle is committed.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Tuple

from schemas import HistoryItem, Quiz, QuizHistory, UserProfile


class UnitOfWork(ABC):
    @abstractmethod
    def begin(self, timeout: float) -> Any:
        """Open a unit of work that must finish within `timeout` seconds."""

    @abstractmethod
    def commit(self, unit: Any) -> None:
        ...

    @abstractmethod
    def abort(self, unit: Any) -> None:
        ...


class QuizStore(ABC):
    @abstractmethod
    def find_quiz(self, quiz_id: str) -> Optional[Quiz]:
        ...


class HistoryStore(ABC):
    @abstractmethod
    def insert(self, record: QuizHistory, unit: Any) -> str:
        """Stage a history record inside `unit` and return its id."""

    @abstractmethod
    def find(self, history_id: str) -> Optional[QuizHistory]:
        ...

    @abstractmethod
    def list_for_user(self, user_id: str, skip: int, limit: int) -> Tuple[List[HistoryItem], int]:
        """Newest-first page of a user's history and the user's total count."""


class UserStore(ABC):
    @abstractmethod
    def atomic_increment(self, user_id: str, points: int, quizzes_taken: int,
                         last_quiz_date: datetime, unit: Any) -> None:
        """Raise NotFoundError when the user does not exist."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...


class QuizAnalyticsStore(ABC):
    @abstractmethod
    def atomic_increment_and_recompute(self, quiz_id: str, percentage: float, unit: Any) -> None:
        """Bump total_attempts and fold `percentage` into average_score.

        The mean uses the incremented count:
        average = (average * (n - 1) + percentage) / n
        """


@dataclass
class Stores:
    unit_of_work: UnitOfWork
    quizzes: QuizStore
    history: HistoryStore
    users: UserStore
    analytics: QuizAnalyticsStore
