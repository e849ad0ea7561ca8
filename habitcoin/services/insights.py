"""
Read-only summaries over a loaded state: the dashboard numbers, the
month calendar and the mood overview.
"""
from datetime import date
from typing import List

from habitcoin.models.schemas import (
    AppState,
    DashboardSummary,
    DayActivity,
    MoodEntryState,
    MoodSummary,
    MoodTrend,
)
from habitcoin.services.calendar import format_day, month_days
from habitcoin.services.progression import (
    StatsSnapshot,
    evaluate_achievements,
    level_progress,
)

RECENT_MOOD_COUNT = 7

# Half-window averages must differ by more than this to count as a trend
MOOD_TREND_THRESHOLD = 0.5


def dashboard_summary(state: AppState, today: date) -> DashboardSummary:
    today_key = format_day(today)
    habits = state.habits

    today_completions = sum(1 for h in habits if today_key in h.completed_dates)
    completion_rate = today_completions / len(habits) * 100 if habits else 0.0

    active = [h.streak for h in habits if h.streak > 0]
    average_streak = sum(active) / len(active) if active else 0.0

    stats = state.user_stats
    snapshot = StatsSnapshot(
        total_coins=stats.total_coins,
        total_habits_completed=stats.total_habits_completed,
        current_streak=stats.current_streak,
        level=stats.level,
    )

    return DashboardSummary(
        today=today,
        today_completions=today_completions,
        habit_count=len(habits),
        completion_rate=completion_rate,
        average_streak=average_streak,
        best_streak=max((h.longest_streak for h in habits), default=0),
        progress=level_progress(stats.total_habits_completed),
        achievements=evaluate_achievements(snapshot, len(habits)),
    )


def calendar_month(state: AppState, year: int, month: int, today: date) -> List[DayActivity]:
    """
    Per-day activity for a month.

    The completion rate of a day is measured against the habits that
    exist now, and is 0 when there are none.
    """
    moods_by_day = {m.date: m for m in state.mood_entries}
    habit_count = len(state.habits)

    days = []
    for day in month_days(year, month):
        key = format_day(day)
        completed = [h.id for h in state.habits if key in h.completed_dates]
        days.append(DayActivity(
            date=key,
            completed_habit_ids=completed,
            completed_count=len(completed),
            habit_count=habit_count,
            completion_rate=len(completed) / habit_count * 100 if habit_count else 0.0,
            mood=moods_by_day.get(key),
            is_today=day == today,
            is_future=day > today,
        ))
    return days


def mood_trend(recent: List[MoodEntryState]) -> MoodTrend:
    """
    Trend over recent entries, newest first.

    The newer half is compared against the older half.
    """
    if len(recent) < 2:
        return MoodTrend.NEUTRAL

    middle = len(recent) // 2
    newer, older = recent[:middle], recent[middle:]
    newer_avg = sum(e.mood for e in newer) / len(newer)
    older_avg = sum(e.mood for e in older) / len(older)

    if newer_avg > older_avg + MOOD_TREND_THRESHOLD:
        return MoodTrend.IMPROVING
    if older_avg > newer_avg + MOOD_TREND_THRESHOLD:
        return MoodTrend.DECLINING
    return MoodTrend.STABLE


def mood_summary(entries: List[MoodEntryState]) -> MoodSummary:
    recent = sorted(entries, key=lambda e: e.date, reverse=True)[:RECENT_MOOD_COUNT]
    average = sum(e.mood for e in entries) / len(entries) if entries else 0.0

    return MoodSummary(
        entry_count=len(entries),
        average_mood=average,
        trend=mood_trend(recent),
        recent=recent,
    )
