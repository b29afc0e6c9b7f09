"""
In-memory store backend.

Used when no MongoDB is configured and by the tests. Writes made through a
unit of work are only staged; commit applies all of them at once while
holding the database lock, or none of them if any staged change fails.
"""
import copy
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel

from errors import NotFoundError, StoreTimeoutError
from schemas import HistoryItem, Quiz, QuizHistory, QuizSummary, UserProfile
from stores import HistoryStore, QuizAnalyticsStore, QuizStore, Stores, UnitOfWork, UserStore

Document = Dict[str, Any]
Change = Callable[[Optional[Document]], Document]

QUIZ = "quiz"
HISTORY = "quizhistory"
USER = "user"


class MemoryDatabase:
    def __init__(self):
        self.lock = threading.Lock()
        self.collections: Dict[str, Dict[str, Document]] = {QUIZ: {}, HISTORY: {}, USER: {}}

    def add(self, collection: str, data: Union[BaseModel, Document], doc_id: Optional[str] = None) -> str:
        """Store a document outside any unit of work (seeding, fixtures)."""
        doc = data.model_dump() if isinstance(data, BaseModel) else copy.deepcopy(data)
        doc_id = doc_id or doc.get("id") or str(ObjectId())
        doc["id"] = doc_id
        with self.lock:
            self.collections[collection][doc_id] = doc
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self.lock:
            return copy.deepcopy(self.collections[collection].get(doc_id))

    def all(self, collection: str) -> List[Document]:
        with self.lock:
            return copy.deepcopy(list(self.collections[collection].values()))

    def remove(self, collection: str, doc_id: str) -> None:
        with self.lock:
            self.collections[collection].pop(doc_id, None)


class MemoryUnit:
    def __init__(self, timeout: float):
        self.deadline = time.monotonic() + timeout
        self.changes: List[Tuple[str, str, Change]] = []
        self.active = True

    def remaining(self) -> float:
        left = self.deadline - time.monotonic()
        if left <= 0:
            raise StoreTimeoutError("Unit of work deadline exceeded")
        return left

    def stage(self, collection: str, doc_id: str, change: Change) -> None:
        if not self.active:
            raise RuntimeError("Unit of work is no longer active")
        self.remaining()
        self.changes.append((collection, doc_id, change))


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, database: MemoryDatabase):
        self.database = database

    def begin(self, timeout: float) -> MemoryUnit:
        return MemoryUnit(timeout)

    def commit(self, unit: MemoryUnit) -> None:
        if not unit.active:
            raise RuntimeError("Unit of work is no longer active")
        unit.active = False
        if not self.database.lock.acquire(timeout=unit.remaining()):
            raise StoreTimeoutError("Timed out waiting for the database lock")
        try:
            collections = self.database.collections
            staged: Dict[Tuple[str, str], Document] = {}
            for collection, doc_id, change in unit.changes:
                key = (collection, doc_id)
                current = staged[key] if key in staged else copy.deepcopy(collections[collection].get(doc_id))
                staged[key] = change(current)
            for (collection, doc_id), doc in staged.items():
                collections[collection][doc_id] = doc
        finally:
            self.database.lock.release()

    def abort(self, unit: MemoryUnit) -> None:
        unit.active = False
        unit.changes.clear()


class MemoryQuizStore(QuizStore):
    def __init__(self, database: MemoryDatabase):
        self.database = database

    def find_quiz(self, quiz_id: str) -> Optional[Quiz]:
        doc = self.database.get(QUIZ, quiz_id)
        if doc is None:
            return None
        return Quiz.model_validate(doc)


class MemoryHistoryStore(HistoryStore):
    def __init__(self, database: MemoryDatabase):
        self.database = database

    def insert(self, record: QuizHistory, unit: MemoryUnit) -> str:
        history_id = str(ObjectId())
        doc = record.model_dump()
        doc["id"] = history_id

        def change(current):
            if current is not None:
                raise RuntimeError(f"Duplicate history id {history_id}")
            return doc

        unit.stage(HISTORY, history_id, change)
        return history_id

    def find(self, history_id: str) -> Optional[QuizHistory]:
        doc = self.database.get(HISTORY, history_id)
        if doc is None:
            return None
        return QuizHistory.model_validate(doc)

    def list_for_user(self, user_id: str, skip: int, limit: int) -> Tuple[List[HistoryItem], int]:
        records = [h for h in self.database.all(HISTORY) if h["user_id"] == user_id]
        records.sort(key=lambda h: h["completed_at"], reverse=True)

        items = []
        for h in records[skip:skip + limit]:
            quiz = self.database.get(QUIZ, h["quiz_id"])
            if quiz is None:
                continue
            items.append(HistoryItem(
                id=h["id"],
                score=h["score"],
                percentage=h["percentage"],
                passed=h["passed"],
                completed_at=h["completed_at"],
                quiz=QuizSummary(
                    id=quiz["id"],
                    title=quiz["title"],
                    category=quiz.get("category"),
                    difficulty=quiz.get("difficulty"),
                ),
            ))
        return items, len(records)


class MemoryUserStore(UserStore):
    def __init__(self, database: MemoryDatabase):
        self.database = database

    def atomic_increment(self, user_id: str, points: int, quizzes_taken: int,
                         last_quiz_date: datetime, unit: MemoryUnit) -> None:
        if self.database.get(USER, user_id) is None:
            raise NotFoundError("user", user_id)

        def change(current):
            if current is None:
                raise NotFoundError("user", user_id)
            current["points"] = current.get("points", 0) + points
            usage = current.setdefault("usage", {})
            usage["quizzes_taken"] = usage.get("quizzes_taken", 0) + quizzes_taken
            usage["last_quiz_date"] = last_quiz_date
            return current

        unit.stage(USER, user_id, change)

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        user = self.database.get(USER, user_id)
        if user is None:
            return None
        percentages = [h["percentage"] for h in self.database.all(HISTORY) if h["user_id"] == user_id]
        average = round(sum(percentages) / len(percentages), 1) if percentages else 0.0
        return UserProfile(
            id=user["id"],
            name=user["name"],
            email=user["email"],
            points=user.get("points", 0),
            total_quizzes_taken=len(percentages),
            average_score=average,
        )


class MemoryQuizAnalyticsStore(QuizAnalyticsStore):
    def __init__(self, database: MemoryDatabase):
        self.database = database

    def atomic_increment_and_recompute(self, quiz_id: str, percentage: float, unit: MemoryUnit) -> None:
        if self.database.get(QUIZ, quiz_id) is None:
            raise NotFoundError("quiz", quiz_id)

        # Evaluated at commit time under the lock, so the count is never stale
        def change(current):
            if current is None:
                raise NotFoundError("quiz", quiz_id)
            analytics = current.setdefault("analytics", {})
            attempts = analytics.get("total_attempts", 0) + 1
            average = analytics.get("average_score", 0.0)
            analytics["total_attempts"] = attempts
            analytics["average_score"] = (average * (attempts - 1) + percentage) / attempts
            return current

        unit.stage(QUIZ, quiz_id, change)


def build_memory_stores(database: Optional[MemoryDatabase] = None) -> Stores:
    database = database or MemoryDatabase()
    return Stores(
        unit_of_work=MemoryUnitOfWork(database),
        quizzes=MemoryQuizStore(database),
        history=MemoryHistoryStore(database),
        users=MemoryUserStore(database),
        analytics=MemoryQuizAnalyticsStore(database),
    )
