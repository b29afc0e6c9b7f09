"""
MongoDB implementations of the store capabilities.

A unit of work is a client session with an open multi-document transaction.
Counters are changed with server-side update operators so that concurrent
submissions never overwrite each other's increments.
"""
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pymongo
from pymongo.client_session import ClientSession

from database import to_obj_id, to_str_id
from errors import NotFoundError, StoreTimeoutError
from schemas import HistoryItem, Quiz, QuizHistory, QuizSummary, UserProfile
from stores import HistoryStore, QuizAnalyticsStore, QuizStore, Stores, UnitOfWork, UserStore

logger = logging.getLogger(__name__)

QUIZ = "quiz"
HISTORY = "quizhistory"
USER = "user"


class MongoUnit:
    def __init__(self, session: ClientSession, timeout: float):
        self.session = session
        self.deadline = time.monotonic() + timeout
        self.closed = False

    def remaining(self) -> float:
        left = self.deadline - time.monotonic()
        if left <= 0:
            raise StoreTimeoutError("Unit of work deadline exceeded")
        return left


class MongoUnitOfWork(UnitOfWork):
    def __init__(self, client):
        self.client = client

    def begin(self, timeout: float) -> MongoUnit:
        session = self.client.start_session()
        try:
            session.start_transaction(max_commit_time_ms=int(timeout * 1000))
        except BaseException:
            session.end_session()
            raise
        return MongoUnit(session, timeout)

    def commit(self, unit: MongoUnit) -> None:
        try:
            with pymongo.timeout(unit.remaining()):
                unit.session.commit_transaction()
        finally:
            unit.session.end_session()
            unit.closed = True

    def abort(self, unit: MongoUnit) -> None:
        if unit.closed:
            return
        try:
            if unit.session.in_transaction:
                unit.session.abort_transaction()
        finally:
            unit.session.end_session()
            unit.closed = True


def _history_from_doc(doc: Dict[str, Any]) -> QuizHistory:
    d = to_str_id(doc)
    d["user_id"] = str(d["user_id"])
    d["quiz_id"] = str(d["quiz_id"])
    return QuizHistory.model_validate(d)


class MongoQuizStore(QuizStore):
    def __init__(self, db):
        self.db = db

    def find_quiz(self, quiz_id: str) -> Optional[Quiz]:
        doc = self.db[QUIZ].find_one({"_id": to_obj_id(quiz_id)})
        if doc is None:
            return None
        return Quiz.model_validate(to_str_id(doc))


class MongoHistoryStore(HistoryStore):
    def __init__(self, db):
        self.db = db

    def insert(self, record: QuizHistory, unit: MongoUnit) -> str:
        doc = record.model_dump(exclude={"id"})
        doc["user_id"] = to_obj_id(record.user_id)
        doc["quiz_id"] = to_obj_id(record.quiz_id)
        with pymongo.timeout(unit.remaining()):
            result = self.db[HISTORY].insert_one(doc, session=unit.session)
        return str(result.inserted_id)

    def find(self, history_id: str) -> Optional[QuizHistory]:
        doc = self.db[HISTORY].find_one({"_id": to_obj_id(history_id)})
        if doc is None:
            return None
        return _history_from_doc(doc)

    def list_for_user(self, user_id: str, skip: int, limit: int) -> Tuple[List[HistoryItem], int]:
        pipeline = [
            {"$match": {"user_id": to_obj_id(user_id)}},
            {"$sort": {"completed_at": -1}},
            {
                "$facet": {
                    "metadata": [{"$count": "total"}],
                    "data": [
                        {"$skip": skip},
                        {"$limit": limit},
                        {
                            "$lookup": {
                                "from": QUIZ,
                                "localField": "quiz_id",
                                "foreignField": "_id",
                                "as": "quiz_info",
                            }
                        },
                        {"$unwind": "$quiz_info"},
                        {
                            "$project": {
                                "_id": 1,
                                "score": 1,
                                "percentage": 1,
                                "passed": 1,
                                "completed_at": 1,
                                "quiz": {
                                    "_id": "$quiz_info._id",
                                    "title": "$quiz_info.title",
                                    "category": "$quiz_info.category",
                                    "difficulty": "$quiz_info.difficulty",
                                },
                            }
                        },
                    ],
                }
            },
        ]
        result = list(self.db[HISTORY].aggregate(pipeline))
        facet = result[0] if result else {}
        metadata = facet.get("metadata") or []
        total = metadata[0]["total"] if metadata else 0

        items = []
        for d in facet.get("data", []):
            quiz = d["quiz"]
            items.append(HistoryItem(
                id=str(d["_id"]),
                score=d["score"],
                percentage=d["percentage"],
                passed=d["passed"],
                completed_at=d["completed_at"],
                quiz=QuizSummary(
                    id=str(quiz["_id"]),
                    title=quiz.get("title", ""),
                    category=quiz.get("category"),
                    difficulty=quiz.get("difficulty"),
                ),
            ))
        return items, total


class MongoUserStore(UserStore):
    def __init__(self, db):
        self.db = db

    def atomic_increment(self, user_id: str, points: int, quizzes_taken: int,
                         last_quiz_date: datetime, unit: MongoUnit) -> None:
        with pymongo.timeout(unit.remaining()):
            result = self.db[USER].update_one(
                {"_id": to_obj_id(user_id)},
                {
                    "$inc": {"points": points, "usage.quizzes_taken": quizzes_taken},
                    "$set": {"usage.last_quiz_date": last_quiz_date},
                },
                session=unit.session,
            )
        if result.matched_count == 0:
            raise NotFoundError("user", user_id)

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        pipeline = [
            {"$match": {"_id": to_obj_id(user_id)}},
            {
                "$lookup": {
                    "from": HISTORY,
                    "localField": "_id",
                    "foreignField": "user_id",
                    "as": "history",
                }
            },
            {
                "$addFields": {
                    "total_quizzes_taken": {"$size": "$history"},
                    "average_score": {
                        "$cond": {
                            "if": {"$gt": [{"$size": "$history"}, 0]},
                            "then": {"$avg": "$history.percentage"},
                            "else": 0,
                        }
                    },
                }
            },
            {
                "$project": {
                    "name": 1,
                    "email": 1,
                    "points": 1,
                    "total_quizzes_taken": 1,
                    "average_score": {"$round": ["$average_score", 1]},
                }
            },
        ]
        result = list(self.db[USER].aggregate(pipeline))
        if not result:
            return None
        return UserProfile.model_validate(to_str_id(result[0]))


class MongoQuizAnalyticsStore(QuizAnalyticsStore):
    def __init__(self, db):
        self.db = db

    def atomic_increment_and_recompute(self, quiz_id: str, percentage: float, unit: MongoUnit) -> None:
        # Second stage sees the incremented total_attempts from the first
        pipeline = [
            {
                "$set": {
                    "analytics.total_attempts": {
                        "$add": [{"$ifNull": ["$analytics.total_attempts", 0]}, 1]
                    }
                }
            },
            {
                "$set": {
                    "analytics.average_score": {
                        "$divide": [
                            {
                                "$add": [
                                    {
                                        "$multiply": [
                                            {"$ifNull": ["$analytics.average_score", 0]},
                                            {"$subtract": ["$analytics.total_attempts", 1]},
                                        ]
                                    },
                                    percentage,
                                ]
                            },
                            "$analytics.total_attempts",
                        ]
                    }
                }
            },
        ]
        with pymongo.timeout(unit.remaining()):
            result = self.db[QUIZ].update_one({"_id": to_obj_id(quiz_id)}, pipeline, session=unit.session)
        if result.matched_count == 0:
            raise NotFoundError("quiz", quiz_id)


def build_mongo_stores(client, db) -> Stores:
    return Stores(
        unit_of_work=MongoUnitOfWork(client),
        quizzes=MongoQuizStore(db),
        history=MongoHistoryStore(db),
        users=MongoUserStore(db),
        analytics=MongoQuizAnalyticsStore(db),
    )
