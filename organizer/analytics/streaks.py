"""
Habit Streaks

A streak is the number of consecutive calendar days, ending today, on which a
habit was completed or justified. The walk is purely calendar based: the
habit's eligible weekdays are not consulted, so a rest day without a
completion ends the streak.

lastCompleted is asymmetric on purpose: it only moves when the most recent
completion (by date) is a real completion. A justified or missed latest day
leaves the previous value in place.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from organizer.models.aggregate import (
    CompletionStatus,
    Habit,
    HabitCompletion,
    OrganizerData,
)


STREAK_STATUSES = frozenset({CompletionStatus.COMPLETED, CompletionStatus.JUSTIFIED})


def completions_for_habit(
    completions: Iterable[HabitCompletion],
    habit_id: str,
) -> dict[date, HabitCompletion]:
    """Index a habit's completions by date."""
    return {c.date: c for c in completions if c.habit_id == habit_id}


def compute_streak(
    completions: Iterable[HabitCompletion],
    habit_id: str,
    today: date,
) -> int:
    """
    Count consecutive streak days walking back from today.

    Args:
        completions: All completions (any habit)
        habit_id: Habit to compute
        today: First day of the walk

    Returns:
        Number of consecutive days with a completed/justified outcome
    """
    by_date = completions_for_habit(completions, habit_id)

    streak = 0
    day = today
    while True:
        completion = by_date.get(day)
        if completion is None or completion.status not in STREAK_STATUSES:
            break
        streak += 1
        day -= timedelta(days=1)
    return streak


def latest_completion(
    completions: Iterable[HabitCompletion],
    habit_id: str,
) -> Optional[HabitCompletion]:
    """Most recent completion of a habit by date, or None."""
    by_date = completions_for_habit(completions, habit_id)
    if not by_date:
        return None
    return by_date[max(by_date)]


def recompute_streak(
    data: OrganizerData,
    habit_id: str,
    today: date,
) -> Optional[Habit]:
    """
    Refresh a habit's streak and lastCompleted in place.

    Returns:
        The updated habit, or None if it does not exist
    """
    habit = data.find_habit(habit_id)
    if habit is None:
        return None

    habit.streak = compute_streak(data.habit_completions, habit_id, today)

    latest = latest_completion(data.habit_completions, habit_id)
    if latest is not None and latest.status == CompletionStatus.COMPLETED:
        habit.last_completed = latest.date

    return habit
