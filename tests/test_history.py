"""
Tests for history reads

Tests cover:
- Explanation lock computed from time limit and time taken
- Paginated listing (newest first, total count)
- History details and user profile summary
"""

from datetime import datetime, timedelta, timezone

import pytest

from errors import NotFoundError, ValidationError
from history import HistoryService, explanation_visibility, get_profile
from submission import SubmissionCoordinator

from conftest import make_quiz

COMPLETED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestExplanationVisibility:

    def test_locked_until_time_limit_runs_out(self):
        can_view, unlock_at = explanation_visibility(10, 120, COMPLETED)
        assert can_view is False
        assert unlock_at == COMPLETED + timedelta(seconds=480)

    def test_visible_when_time_used_up(self):
        assert explanation_visibility(10, 600, COMPLETED) == (True, None)
        assert explanation_visibility(10, 900, COMPLETED) == (True, None)

    def test_numeric_strings_are_accepted(self):
        can_view, unlock_at = explanation_visibility("1", "30", COMPLETED)
        assert can_view is False
        assert unlock_at == COMPLETED + timedelta(seconds=30)

    @pytest.mark.parametrize("time_limit,time_taken", [
        (None, 10),
        (0, 10),
        (-5, 10),
        (10, -1),
        (10, None),
        ("abc", 10),
        (float("nan"), 10),
        (float("inf"), 10),
    ])
    def test_invalid_values_leave_explanations_visible(self, time_limit, time_taken):
        assert explanation_visibility(time_limit, time_taken, COMPLETED) == (True, None)


def clock_from(times):
    it = iter(times)
    return lambda: next(it)


class TestHistoryListing:

    @pytest.fixture
    def history_ids(self, stores):
        times = [COMPLETED + timedelta(minutes=i) for i in range(5)]
        coordinator = SubmissionCoordinator(stores, timeout=5, clock=clock_from(times))
        return [coordinator.submit("quiz-1", "user-1", ["Rome"]).history_id for _ in range(5)]

    def test_newest_first_with_total(self, stores, history_ids):
        page = HistoryService(stores).list_for_user("user-1", page=1, limit=2)
        assert [item.id for item in page.history] == [history_ids[4], history_ids[3]]
        assert page.pagination.total == 5
        assert page.pagination.page == 1
        assert page.pagination.limit == 2

    def test_last_page(self, stores, history_ids):
        page = HistoryService(stores).list_for_user("user-1", page=3, limit=2)
        assert [item.id for item in page.history] == [history_ids[0]]
        assert page.pagination.total == 5

    def test_items_carry_quiz_summary(self, stores, history_ids):
        item = HistoryService(stores).list_for_user("user-1").history[0]
        assert item.quiz.id == "quiz-1"
        assert item.quiz.title == "Capitals"
        assert item.quiz.category == "Geography"
        assert item.percentage == 50

    def test_other_users_are_excluded(self, stores, history_ids):
        page = HistoryService(stores).list_for_user("someone-else")
        assert page.history == []
        assert page.pagination.total == 0

    def test_default_page_size(self, stores, history_ids):
        page = HistoryService(stores, page_size=3).list_for_user("user-1")
        assert len(page.history) == 3
        assert page.pagination.limit == 3

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_paging(self, stores, page, limit):
        with pytest.raises(ValidationError):
            HistoryService(stores).list_for_user("user-1", page=page, limit=limit)


class TestHistoryDetail:

    def test_detail_locks_explanations(self, stores, coordinator):
        receipt = coordinator.submit("quiz-1", "user-1", ["Rome"], time_taken=60)
        detail = HistoryService(stores).get_detail(receipt.history_id)
        assert detail.id == receipt.history_id
        assert detail.quiz.title == "Capitals"
        assert detail.can_view_explanations is False
        assert detail.explanations_unlock_at == detail.completed_at + timedelta(seconds=540)

    def test_detail_without_time_limit(self, stores, memory_db):
        memory_db.add("quiz", make_quiz(time_limit=None), doc_id="open-quiz")
        coordinator = SubmissionCoordinator(stores, timeout=5)
        receipt = coordinator.submit("open-quiz", "user-1", ["Rome"], time_taken=60)
        detail = HistoryService(stores).get_detail(receipt.history_id)
        assert detail.can_view_explanations is True
        assert detail.explanations_unlock_at is None

    def test_detail_with_deleted_quiz(self, stores, memory_db, coordinator):
        receipt = coordinator.submit("quiz-1", "user-1", ["Rome"], time_taken=60)
        memory_db.remove("quiz", "quiz-1")
        detail = HistoryService(stores).get_detail(receipt.history_id)
        assert detail.quiz is None
        assert detail.can_view_explanations is True

    def test_missing_history(self, stores):
        with pytest.raises(NotFoundError):
            HistoryService(stores).get_detail("missing")


class TestUserProfile:

    def test_profile_without_history(self, stores):
        profile = get_profile(stores, "user-1")
        assert profile.name == "Ada"
        assert profile.total_quizzes_taken == 0
        assert profile.average_score == 0

    def test_profile_averages_history(self, stores, coordinator):
        coordinator.submit("quiz-1", "user-1", ["Rome", "Paris"])
        coordinator.submit("quiz-1", "user-1", ["Rome"])
        coordinator.submit("quiz-1", "user-1", [])
        profile = get_profile(stores, "user-1")
        assert profile.total_quizzes_taken == 3
        assert profile.average_score == 50.0
        assert profile.points == 25

    def test_profile_rounds_to_one_decimal(self, stores, memory_db):
        memory_db.add("quiz", make_quiz(questions=make_quiz().questions * 3), doc_id="six")
        coordinator = SubmissionCoordinator(stores, timeout=5)
        coordinator.submit("six", "user-1", ["Rome"])
        profile = get_profile(stores, "user-1")
        assert profile.average_score == 16.7

    def test_missing_user(self, stores):
        with pytest.raises(NotFoundError):
            get_profile(stores, "ghost")
