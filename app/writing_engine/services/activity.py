"""Learner activity counters: daily streak, exercise and word totals."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Activity:
    exercises_completed: int = 0
    total_words: int = 0
    streak_days: int = 0
    last_active: Optional[date] = None


def update_streak(streak_days: int, last_active: Optional[date], today: date) -> int:
    """Return the streak after activity on ``today``.

    Activity on the day after the last active day extends the streak, a
    longer gap restarts it at 1, and repeated activity on the same day leaves
    it alone (except that a zero streak becomes 1).
    """
    if last_active is None:
        return 1
    gap = (today - last_active).days
    if gap == 1:
        return streak_days + 1
    if gap > 1:
        return 1
    if streak_days == 0:
        return 1
    return streak_days


def record_submission(activity: Activity, word_count: int, today: date) -> Activity:
    """Fold one graded submission into the counters."""
    return Activity(
        exercises_completed=activity.exercises_completed + 1,
        total_words=activity.total_words + max(word_count, 0),
        streak_days=update_streak(activity.streak_days, activity.last_active, today),
        last_active=today if activity.last_active is None or today > activity.last_active else activity.last_active,
    )
