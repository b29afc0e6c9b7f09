"""
Read side of quiz history: paginated listing and attempt details.

Explanations of an attempt stay hidden until the quiz's time limit would have
run out. The lock is computed on every read and never stored.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Optional, Tuple

from config import Config
from errors import NotFoundError, ValidationError
from schemas import HistoryDetail, HistoryPage, Pagination, UserProfile
from stores import Stores

logger = logging.getLogger(__name__)


def _finite(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def explanation_visibility(time_limit_minutes: Any, time_taken_seconds: Any,
                           completed_at: datetime) -> Tuple[bool, Optional[datetime]]:
    """Return (can_view_explanations, explanations_unlock_at)."""
    time_limit = _finite(time_limit_minutes)
    time_taken = _finite(time_taken_seconds)
    if time_limit is None or time_limit <= 0 or time_taken is None or time_taken < 0:
        return True, None

    remaining = time_limit * 60 - time_taken
    if remaining <= 0:
        return True, None
    return False, completed_at + timedelta(seconds=remaining)


class HistoryService:
    def __init__(self, stores: Stores, page_size: Optional[int] = None):
        self.stores = stores
        self.page_size = page_size or Config.HISTORY_PAGE_SIZE

    def list_for_user(self, user_id: str, page: int = 1, limit: Optional[int] = None) -> HistoryPage:
        limit = limit if limit is not None else self.page_size
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive", details={"page": page, "limit": limit})

        items, total = self.stores.history.list_for_user(user_id, skip=(page - 1) * limit, limit=limit)
        return HistoryPage(history=items, pagination=Pagination(page=page, limit=limit, total=total))

    def get_detail(self, history_id: str) -> HistoryDetail:
        record = self.stores.history.find(history_id)
        if record is None:
            raise NotFoundError("history", history_id)

        quiz = self.stores.quizzes.find_quiz(record.quiz_id)
        if quiz is None:
            logger.warning("History %s refers to missing quiz %s", history_id, record.quiz_id)
            can_view, unlock_at = True, None
        else:
            can_view, unlock_at = explanation_visibility(quiz.time_limit, record.time_taken, record.completed_at)
        logger.debug("History %s explanations: can_view=%s unlock_at=%s", history_id, can_view, unlock_at)

        return HistoryDetail(
            **record.model_dump(),
            quiz=quiz,
            can_view_explanations=can_view,
            explanations_unlock_at=unlock_at,
        )


def get_profile(stores: Stores, user_id: str) -> UserProfile:
    profile = stores.users.get_profile(user_id)
    if profile is None:
        raise NotFoundError("user", user_id)
    return profile
