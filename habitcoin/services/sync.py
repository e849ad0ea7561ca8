"""
Sync Gateway

Loads a user's full state from the store and runs every mutation as
write-then-reload: persist the change, commit, then rebuild the state
from what is durably stored instead of patching a client copy.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from habitcoin.config import settings
from habitcoin.exceptions import PersistenceError, ValidationError
from habitcoin.models.db_models import Habit, User
from habitcoin.models.schemas import (
    AppState,
    HabitCreate,
    HabitState,
    HabitUpdate,
    MoodEntryCreate,
    MoodEntryState,
    UserStatsState,
    UserStatsUpdate,
)
from habitcoin.services import catalog, ledger
from habitcoin.services.calendar import format_day, parse_day, today_for
from habitcoin.services.completions import toggle_completion, user_lock
from habitcoin.services.progression import (
    apply_stats_update,
    coins_for_priority,
    get_or_create_stats,
    repair_user_stats,
)
from habitcoin.services.streaks import activity_streak, streaks_by_habit

logger = logging.getLogger(__name__)


def user_today(user: User) -> date:
    """Current calendar day for the account's timezone."""
    return today_for(user.timezone or settings.DEFAULT_TIMEZONE)


@contextmanager
def _write(db: Session, user_id: str, operation: str):
    """
    Serialize a mutation for the user and commit it as one unit.

    Store failures are rolled back and re-raised as PersistenceError.
    """
    with user_lock(user_id):
        try:
            yield
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(
                f"{operation} failed",
                user_id=user_id,
                operation=operation,
                cause=e,
            )
        except Exception:
            db.rollback()
            raise


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Habit name must not be empty", field="name", value=name)
    return cleaned


def load_all(db: Session, user: User, today: Optional[date] = None) -> AppState:
    """
    Load habits with derived streaks, stats, moods and purchases.

    The stats row supplies coins, completion count and level; the
    cross-habit streak is derived fresh for the reference day.
    """
    if today is None:
        today = user_today(user)

    try:
        habits = ledger.list_habits(db, user.id)
        completions = ledger.list_completions(db, user.id)
        stats = get_or_create_stats(db, user.id)
        moods = ledger.list_moods(db, user.id)
        purchases = ledger.list_purchases(db, user.id)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(
            "Failed to load user data",
            user_id=user.id,
            operation="load_all",
            cause=e,
        )

    streaks_for = streaks_by_habit(completions, today)
    habit_states = []
    for habit in habits:
        dates = completions.get(habit.id, set())
        streaks = streaks_for[habit.id]
        habit_states.append(HabitState(
            id=habit.id,
            name=habit.name,
            description=habit.description or "",
            priority=habit.priority,
            created_at=habit.created_at.isoformat(),
            completed_dates=sorted(format_day(d) for d in dates),
            streak=streaks.current,
            longest_streak=streaks.longest,
            coins_per_completion=habit.coins_per_completion,
        ))

    return AppState(
        habits=habit_states,
        user_stats=UserStatsState(
            total_coins=stats.total_coins,
            total_habits_completed=stats.total_habits_completed,
            current_streak=activity_streak(completions, today),
            level=stats.level,
        ),
        mood_entries=[
            MoodEntryState(date=format_day(m.entry_date), mood=m.mood, note=m.note)
            for m in moods
        ],
        purchased_items=[p.item_id for p in purchases],
        loading=False,
    )


def refresh_data(db: Session, user: User, today: Optional[date] = None) -> AppState:
    return load_all(db, user, today)


def save_habit(db: Session, user: User, request: HabitCreate, today: Optional[date] = None) -> AppState:
    """Create a habit; its reward is fixed from the priority now."""
    name = _clean_name(request.name)
    priority = request.priority.value

    with _write(db, user.id, "save_habit"):
        habit = Habit(
            user_id=user.id,
            name=name,
            description=request.description or "",
            priority=priority,
            coins_per_completion=coins_for_priority(priority),
        )
        db.add(habit)
        db.flush()
        logger.info(f"User {user.id} created habit {habit.id} ({priority})")

    return load_all(db, user, today)


def update_habit(
    db: Session,
    user: User,
    habit_id: int,
    request: HabitUpdate,
    today: Optional[date] = None,
) -> AppState:
    """
    Edit name, description or priority.

    The reward per completion keeps its creation-time value, so a
    priority change never alters what undoing an old completion reverses.
    """
    with _write(db, user.id, "update_habit"):
        habit = ledger.get_habit(db, user.id, habit_id)
        if request.name is not None:
            habit.name = _clean_name(request.name)
        if request.description is not None:
            habit.description = request.description
        if request.priority is not None:
            habit.priority = request.priority.value
        db.flush()
        logger.info(f"User {user.id} updated habit {habit_id}")

    return load_all(db, user, today)


def delete_habit(db: Session, user: User, habit_id: int, today: Optional[date] = None) -> AppState:
    """
    Delete a habit and its completions.

    Stats are rebuilt from the remaining ledger, so the rewards of the
    removed completions are taken back.
    """
    if today is None:
        today = user_today(user)

    with _write(db, user.id, "delete_habit"):
        habit = ledger.get_habit(db, user.id, habit_id)
        db.delete(habit)
        db.flush()
        repair_user_stats(db, user.id, today)
        logger.info(f"User {user.id} deleted habit {habit_id}")

    return load_all(db, user, today)


def toggle_habit_completion(
    db: Session,
    user: User,
    habit_id: int,
    day: Optional[str] = None,
    today: Optional[date] = None,
) -> AppState:
    """Toggle a completion (default: today) and reload."""
    if today is None:
        today = user_today(user)
    target = parse_day(day) if day else today

    with user_lock(user.id):
        toggle_completion(db, user.id, habit_id, target, today)

    return load_all(db, user, today)


def update_user_stats(
    db: Session,
    user: User,
    update: UserStatsUpdate,
    today: Optional[date] = None,
) -> AppState:
    """
    Apply an explicit partial stats update and reload.

    Raises:
        ValidationError: If the completion count would drop below the
            number of completions in the ledger.
    """
    with _write(db, user.id, "update_user_stats"):
        if update.total_habits_completed is not None:
            recorded = ledger.count_completions(db, user.id)
            if update.total_habits_completed < recorded:
                raise ValidationError(
                    f"total_habits_completed cannot be below the {recorded} recorded completions",
                    field="total_habits_completed",
                    value=update.total_habits_completed,
                    user_id=user.id,
                )
        stats = get_or_create_stats(db, user.id)
        apply_stats_update(stats, update)
        logger.info(f"User {user.id} stats updated: {update.model_dump(exclude_none=True)}")

    return load_all(db, user, today)


def recompute_user_stats(db: Session, user: User, today: Optional[date] = None) -> AppState:
    """Rebuild the stats row from the ledger and reload."""
    if today is None:
        today = user_today(user)

    with _write(db, user.id, "recompute_user_stats"):
        repair_user_stats(db, user.id, today)

    return load_all(db, user, today)


def save_mood_entry(
    db: Session,
    user: User,
    entry_date: str,
    request: MoodEntryCreate,
    today: Optional[date] = None,
) -> AppState:
    """Save the mood for a day, replacing any earlier entry for that day."""
    day = parse_day(entry_date, field="entry_date")
    note = request.note.strip() if request.note else None

    with _write(db, user.id, "save_mood_entry"):
        ledger.upsert_mood(db, user.id, day, request.mood, note or None)

    return load_all(db, user, today)


def purchase_item(db: Session, user: User, item_id: str, today: Optional[date] = None) -> AppState:
    """
    Buy a catalog item with coins.

    Raises:
        NotFoundError: Unknown item.
        ValidationError: Already owned, or not enough coins.
    """
    item = catalog.get_item(item_id)
    price = item["price"]

    with _write(db, user.id, "purchase_item"):
        stats = get_or_create_stats(db, user.id)
        if stats.total_coins < price:
            raise ValidationError(
                f"Not enough coins: {stats.total_coins} available, {price} needed",
                field="item_id",
                value=item_id,
                user_id=user.id,
            )
        ledger.record_purchase(db, user.id, item_id, price)
        stats.total_coins -= price
        logger.info(f"User {user.id} bought {item['name']} for {price} coins")

    return load_all(db, user, today)
