"""
Progression Service

Rewards, levels and the user stats row.

Coins and completion counts are kept up to date incrementally by the
toggle path. recompute_stats rebuilds the same numbers from the ledger
and is the repair/verification path.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from habitcoin.exceptions import ValidationError
from habitcoin.models.db_models import UserStats
from habitcoin.models.schemas import UserStatsUpdate
from habitcoin.services import ledger
from habitcoin.services.streaks import activity_streak

logger = logging.getLogger(__name__)


# Coins granted per completion, fixed when the habit is created
COINS_BY_PRIORITY = {
    "low": 10,
    "medium": 20,
    "high": 30,
}

# Completions needed per level
COMPLETIONS_PER_LEVEL = 10

# (name, icon, description, stat, threshold)
ACHIEVEMENTS = [
    ("First 10", "🎯", "Complete 10 habits", "total_habits_completed", 10),
    ("Half Century", "🏆", "Complete 50 habits", "total_habits_completed", 50),
    ("Centurion", "👑", "Complete 100 habits", "total_habits_completed", 100),
    ("Week Warrior", "⚡", "7 day streak", "current_streak", 7),
    ("Month Master", "🔥", "30 day streak", "current_streak", 30),
    ("Coin Collector", "💰", "Earn 1000 coins", "total_coins", 1000),
    ("Habit Hero", "🌟", "Track 5 habits", "habit_count", 5),
]


@dataclass(frozen=True)
class StatsSnapshot:
    """User stats derived from the ledger."""
    total_coins: int
    total_habits_completed: int
    current_streak: int
    level: int

    def to_dict(self) -> dict:
        return asdict(self)


def coins_for_priority(priority: str) -> int:
    """
    Reward per completion for a priority tier.

    Raises:
        ValidationError: For an unknown priority.
    """
    try:
        return COINS_BY_PRIORITY[priority]
    except KeyError:
        raise ValidationError(
            f"Invalid priority. Must be one of: {sorted(COINS_BY_PRIORITY)}",
            field="priority",
            value=priority,
        )


def calculate_level(total_habits_completed: int) -> int:
    """Level 1 for 0-9 completions, level 2 for 10-19, and so on."""
    return max(0, total_habits_completed) // COMPLETIONS_PER_LEVEL + 1


def level_progress(total_habits_completed: int) -> dict:
    """
    Progress toward the next level.

    Returns:
        Dict with level, completions_into_level, completions_for_next_level
        (the total at which the next level is reached), remaining and
        progress_percent.
    """
    total = max(0, total_habits_completed)
    level = calculate_level(total)
    into_level = total % COMPLETIONS_PER_LEVEL
    next_level_at = level * COMPLETIONS_PER_LEVEL

    return {
        "level": level,
        "completions_into_level": into_level,
        "completions_for_next_level": next_level_at,
        "remaining": next_level_at - total,
        "progress_percent": into_level / COMPLETIONS_PER_LEVEL * 100,
    }


def evaluate_achievements(stats: StatsSnapshot, habit_count: int) -> List[dict]:
    """Badges unlocked by the current stats. Derived, never stored."""
    values = {
        "total_habits_completed": stats.total_habits_completed,
        "current_streak": stats.current_streak,
        "total_coins": stats.total_coins,
        "habit_count": habit_count,
    }
    return [
        {"name": name, "icon": icon, "description": description}
        for name, icon, description, stat, threshold in ACHIEVEMENTS
        if values[stat] >= threshold
    ]


def get_or_create_stats(db: Session, user_id: str) -> UserStats:
    """
    Get the stats row for a user, creating an empty one if missing.

    Does not commit.
    """
    stats = db.query(UserStats).filter(UserStats.user_id == user_id).first()
    if stats is None:
        stats = UserStats(
            user_id=user_id,
            total_coins=0,
            total_habits_completed=0,
            current_streak=0,
            level=1,
        )
        db.add(stats)
        db.flush()
        logger.info(f"Created stats row for user {user_id}")
    return stats


def snapshot_of(stats: UserStats) -> StatsSnapshot:
    return StatsSnapshot(
        total_coins=stats.total_coins,
        total_habits_completed=stats.total_habits_completed,
        current_streak=stats.current_streak,
        level=stats.level,
    )


def apply_stats_update(stats: UserStats, update: UserStatsUpdate) -> UserStats:
    """
    Apply an explicit partial update to the stats row.

    Only fields that are set on the update are written. The level is
    never written directly; it is re-derived from the completion count.

    Raises:
        ValidationError: If the update would make a count negative.
    """
    if update.total_coins is not None:
        stats.total_coins = update.total_coins

    if update.total_habits_completed is not None:
        if update.total_habits_completed < 0:
            raise ValidationError(
                "total_habits_completed cannot be negative",
                field="total_habits_completed",
                value=update.total_habits_completed,
            )
        stats.total_habits_completed = update.total_habits_completed

    if update.current_streak is not None:
        if update.current_streak < 0:
            raise ValidationError(
                "current_streak cannot be negative",
                field="current_streak",
                value=update.current_streak,
            )
        stats.current_streak = update.current_streak

    stats.level = calculate_level(stats.total_habits_completed)
    return stats


def recompute_stats(db: Session, user_id: str, today: date) -> StatsSnapshot:
    """
    Rebuild user stats from scratch.

    total_coins is the sum of rewards for every completion still in the
    ledger minus everything spent in the shop.

    Args:
        db: Database session.
        user_id: Firebase UID.
        today: Reference day for the cross-habit streak.
    """
    total_completed = ledger.count_completions(db, user_id)
    earned = ledger.sum_completion_rewards(db, user_id)
    spent = ledger.sum_purchase_prices(db, user_id)
    streak = activity_streak(ledger.list_completions(db, user_id), today)

    return StatsSnapshot(
        total_coins=earned - spent,
        total_habits_completed=total_completed,
        current_streak=streak,
        level=calculate_level(total_completed),
    )


def repair_user_stats(db: Session, user_id: str, today: date) -> StatsSnapshot:
    """
    Overwrite the stats row with values rebuilt from the ledger.

    Does not commit. Logs a warning when the stored row had drifted.
    """
    stats = get_or_create_stats(db, user_id)
    before = snapshot_of(stats)
    rebuilt = recompute_stats(db, user_id, today)

    if before != rebuilt:
        logger.warning(f"Stats drift for user {user_id}: stored={before} rebuilt={rebuilt}")

    stats.total_coins = rebuilt.total_coins
    stats.total_habits_completed = rebuilt.total_habits_completed
    stats.current_streak = rebuilt.current_streak
    stats.level = rebuilt.level
    db.flush()

    return rebuilt


def verify_user_stats(db: Session, user_id: str, today: Optional[date] = None) -> bool:
    """
    Check that stored coins, count and level match the ledger.

    The streak is left out when no reference day is given because it
    depends on when it was last stored.
    """
    stats = get_or_create_stats(db, user_id)
    rebuilt = recompute_stats(db, user_id, today or date.today())
    matches = (
        stats.total_coins == rebuilt.total_coins
        and stats.total_habits_completed == rebuilt.total_habits_completed
        and stats.level == rebuilt.level
    )
    if today is not None:
        matches = matches and stats.current_streak == rebuilt.current_streak
    return matches
