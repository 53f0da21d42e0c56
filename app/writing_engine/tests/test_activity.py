from datetime import date

import pytest

from app.writing_engine.services.activity import Activity, record_submission, update_streak

TODAY = date(2024, 3, 10)


@pytest.mark.parametrize("streak, last_active, expected", [
    (0, None, 1),
    (4, date(2024, 3, 9), 5),
    (4, date(2024, 3, 7), 1),
    (4, TODAY, 4),
    (0, TODAY, 1),
])
def test_update_streak(streak, last_active, expected):
    assert update_streak(streak, last_active, TODAY) == expected


def test_record_submission_counts_exercise_and_words():
    before = Activity(exercises_completed=2, total_words=300, streak_days=3, last_active=date(2024, 3, 9))
    after = record_submission(before, 120, TODAY)

    assert after == Activity(exercises_completed=3, total_words=420, streak_days=4, last_active=TODAY)


def test_second_submission_same_day_keeps_streak():
    first = record_submission(Activity(), 50, TODAY)
    second = record_submission(first, 70, TODAY)

    assert first.streak_days == 1
    assert second.streak_days == 1
    assert second.exercises_completed == 2
    assert second.total_words == 120
