"""
Toggle Coordinator

The single mutating entry point for completions. Flips one habit's
completion for one day and applies or reverses its reward in the same
transaction.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from threading import Lock
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from habitcoin.exceptions import PersistenceError, ValidationError
from habitcoin.services import ledger
from habitcoin.services.progression import calculate_level, get_or_create_stats
from habitcoin.services.streaks import activity_streak

logger = logging.getLogger(__name__)


class UserLockRegistry:
    """
    One lock per user account.

    Mutations for a user are serialized so the increment/decrement pair
    of a toggle can never interleave with another write for that user.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks: Dict[str, Lock] = defaultdict(Lock)

    def get(self, user_id: str) -> Lock:
        with self._guard:
            return self._locks[user_id]


_registry = UserLockRegistry()


def user_lock(user_id: str) -> Lock:
    """Lock that every mutating call for this user must hold."""
    return _registry.get(user_id)


@dataclass(frozen=True)
class ToggleResult:
    habit_id: int
    date: date
    completed: bool
    coins_delta: int
    level_before: int
    level_after: int

    @property
    def level_changed(self) -> bool:
        return self.level_before != self.level_after


def toggle_completion(
    db: Session,
    user_id: str,
    habit_id: int,
    day: date,
    today: date,
) -> ToggleResult:
    """
    Flip the completion of a habit on a day and settle its reward.

    Membership is read from the store, not from any client copy, so a
    caller retrying after a failed attempt cannot apply a reward twice.

    Args:
        db: Database session. Committed on success, rolled back on failure.
        user_id: Firebase UID.
        habit_id: Habit to toggle.
        day: Calendar day to toggle.
        today: The user's current day, for validation and the streak.

    Returns:
        ToggleResult describing what changed.

    Raises:
        NotFoundError: Unknown habit. Nothing is written.
        ValidationError: Day in the future. Nothing is written.
        PersistenceError: The store write failed; nothing was applied.
    """
    if day > today:
        raise ValidationError(
            f"Cannot complete a habit on a future day ({day.isoformat()})",
            field="date",
            value=day.isoformat(),
            user_id=user_id,
        )

    try:
        habit = ledger.get_habit(db, user_id, habit_id)
        reward = habit.coins_per_completion
        stats = get_or_create_stats(db, user_id)
        level_before = stats.level

        if ledger.has_completion(db, habit_id, day):
            ledger.remove_completion(db, user_id, habit_id, day)
            coins_delta = -reward
            if stats.total_habits_completed > 0:
                stats.total_habits_completed -= 1
            else:
                stats.total_habits_completed = ledger.count_completions(db, user_id)
                logger.warning(f"Completion count for user {user_id} was behind the ledger; re-derived")
            completed = False
        else:
            ledger.record_completion(db, user_id, habit_id, day)
            coins_delta = reward
            stats.total_habits_completed += 1
            completed = True

        stats.total_coins += coins_delta
        stats.level = calculate_level(stats.total_habits_completed)
        stats.current_streak = activity_streak(ledger.list_completions(db, user_id), today)

        db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(
            f"Failed to toggle habit {habit_id} on {day.isoformat()}",
            user_id=user_id,
            operation="toggle_completion",
            context={"habit_id": habit_id, "date": day.isoformat()},
            cause=e,
        )
    except Exception:
        db.rollback()
        raise

    result = ToggleResult(
        habit_id=habit_id,
        date=day,
        completed=completed,
        coins_delta=coins_delta,
        level_before=level_before,
        level_after=stats.level,
    )

    logger.info(
        f"User {user_id} {'completed' if completed else 'uncompleted'} habit {habit_id} "
        f"on {day.isoformat()} ({coins_delta:+d} coins, level {level_before} -> {stats.level})"
    )
    if result.level_changed:
        logger.info(f"User {user_id} moved to level {stats.level}")

    return result
