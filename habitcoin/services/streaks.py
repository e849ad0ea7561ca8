"""
Streak Calculator

Pure functions over sets of calendar days. No database access, so they
can run freely on any loaded snapshot.
"""
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Mapping

from habitcoin.services.calendar import ONE_DAY


@dataclass(frozen=True)
class StreakResult:
    """Current and longest streak for one habit."""
    current: int
    longest: int


def current_streak(dates: Iterable[date], today: date) -> int:
    """
    Count consecutive completed days ending at today.

    If today itself is not completed the streak is 0.
    """
    completed = set(dates)
    streak = 0
    day = today

    while day in completed:
        streak += 1
        day -= ONE_DAY

    return streak


def longest_streak(dates: Iterable[date]) -> int:
    """
    Length of the longest run of consecutive days in the history.

    Args:
        dates: Completion days, in any order. Duplicates are ignored.

    Returns:
        Longest run length, 0 for an empty history.
    """
    ordered = sorted(set(dates))
    if not ordered:
        return 0

    longest = 1
    run = 1
    for previous, current in zip(ordered, ordered[1:]):
        if current - previous == ONE_DAY:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return longest


def habit_streaks(dates: Iterable[date], today: date) -> StreakResult:
    """Current and longest streak for a single habit."""
    completed = set(dates)
    return StreakResult(
        current=current_streak(completed, today),
        longest=longest_streak(completed),
    )


def activity_streak(completions_by_habit: Mapping[int, Iterable[date]], today: date) -> int:
    """
    User-wide streak across all habits.

    A day is active if any habit was completed on it; the habit does not
    have to be the same from one day to the next.
    """
    active_days = set()
    for dates in completions_by_habit.values():
        active_days.update(dates)
    return current_streak(active_days, today)


def streaks_by_habit(completions_by_habit: Mapping[int, Iterable[date]], today: date) -> Dict[int, StreakResult]:
    """Streak results for every habit in a snapshot."""
    return {
        habit_id: habit_streaks(dates, today)
        for habit_id, dates in completions_by_habit.items()
    }
