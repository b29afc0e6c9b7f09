import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from memory import MemoryDatabase, build_memory_stores
from schemas import Question, QuestionOption, Quiz, User
from submission import SubmissionCoordinator

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_quiz(**overrides):
    data = dict(
        title="Capitals",
        category="Geography",
        difficulty="easy",
        time_limit=10,
        passing_score=60,
        questions=[
            Question(
                id="q1",
                type="mcq",
                question="Capital of Italy?",
                options=[
                    QuestionOption(text="Milan"),
                    QuestionOption(text="Rome", is_correct=True),
                ],
                points=10,
                explanation="Rome has been the capital since 1871.",
            ),
            Question(
                id="q2",
                type="short-answer",
                question="Capital of France?",
                correct_answer="Paris",
                points=5,
            ),
        ],
    )
    data.update(overrides)
    return Quiz(**data)


@pytest.fixture
def memory_db():
    db = MemoryDatabase()
    db.add("quiz", make_quiz(), doc_id="quiz-1")
    db.add("user", User(name="Ada", email="ada@example.com"), doc_id="user-1")
    return db


@pytest.fixture
def stores(memory_db):
    return build_memory_stores(memory_db)


@pytest.fixture
def coordinator(stores):
    return SubmissionCoordinator(stores, timeout=5, clock=lambda: FIXED_NOW)
