"""
Ledger Store

Durable record of completion, mood and purchase events, scoped per user.

Nothing in this module commits. Callers own the transaction so that a
ledger write and the matching stats update land together or not at all.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from habitcoin.exceptions import NotFoundError, ValidationError
from habitcoin.models.db_models import Habit, HabitCompletion, MoodEntry, PurchasedItem

logger = logging.getLogger(__name__)


def get_habit(db: Session, user_id: str, habit_id: int) -> Habit:
    """
    Fetch a habit owned by the user.

    Raises:
        NotFoundError: If the habit does not exist or belongs to someone else.
    """
    habit = db.query(Habit).filter(
        Habit.id == habit_id,
        Habit.user_id == user_id,
    ).first()

    if not habit:
        raise NotFoundError(
            f"Habit {habit_id} not found",
            record_type="habit",
            record_id=habit_id,
            user_id=user_id,
        )
    return habit


def list_habits(db: Session, user_id: str) -> List[Habit]:
    """All habits for a user, newest first."""
    return db.query(Habit).filter(
        Habit.user_id == user_id,
    ).order_by(Habit.created_at.desc(), Habit.id.desc()).all()


def has_completion(db: Session, habit_id: int, day: date) -> bool:
    return db.query(HabitCompletion.id).filter(
        HabitCompletion.habit_id == habit_id,
        HabitCompletion.completed_date == day,
    ).first() is not None


def record_completion(db: Session, user_id: str, habit_id: int, day: date) -> HabitCompletion:
    """
    Add a completion for (habit, day).

    Raises:
        ValidationError: If the pair is already recorded.
    """
    if has_completion(db, habit_id, day):
        raise ValidationError(
            f"Habit {habit_id} is already completed on {day.isoformat()}",
            field="date",
            value=day.isoformat(),
            user_id=user_id,
        )

    completion = HabitCompletion(
        habit_id=habit_id,
        user_id=user_id,
        completed_date=day,
    )
    db.add(completion)
    db.flush()
    return completion


def remove_completion(db: Session, user_id: str, habit_id: int, day: date) -> None:
    """
    Remove the completion for (habit, day).

    Raises:
        NotFoundError: If the pair is not recorded.
    """
    completion = db.query(HabitCompletion).filter(
        HabitCompletion.habit_id == habit_id,
        HabitCompletion.user_id == user_id,
        HabitCompletion.completed_date == day,
    ).first()

    if not completion:
        raise NotFoundError(
            f"No completion for habit {habit_id} on {day.isoformat()}",
            record_type="completion",
            record_id=f"{habit_id}:{day.isoformat()}",
            user_id=user_id,
        )

    db.delete(completion)
    db.flush()


def list_completions(db: Session, user_id: str) -> Dict[int, Set[date]]:
    """
    Map every habit of the user to its set of completion days.

    Habits with no completions map to an empty set.
    """
    result: Dict[int, Set[date]] = {
        habit_id: set()
        for (habit_id,) in db.query(Habit.id).filter(Habit.user_id == user_id)
    }

    rows = db.query(HabitCompletion.habit_id, HabitCompletion.completed_date).filter(
        HabitCompletion.user_id == user_id,
    )
    for habit_id, completed_date in rows:
        result.setdefault(habit_id, set()).add(completed_date)

    return result


def count_completions(db: Session, user_id: str) -> int:
    return db.query(func.count(HabitCompletion.id)).filter(
        HabitCompletion.user_id == user_id,
    ).scalar() or 0


def sum_completion_rewards(db: Session, user_id: str) -> int:
    """Coins granted by every completion currently in the ledger."""
    total = db.query(func.sum(Habit.coins_per_completion)).select_from(Habit).join(
        HabitCompletion, HabitCompletion.habit_id == Habit.id,
    ).filter(
        HabitCompletion.user_id == user_id,
    ).scalar()
    return int(total or 0)


def upsert_mood(db: Session, user_id: str, day: date, mood: int, note: Optional[str]) -> MoodEntry:
    """
    Save the mood for a day, replacing any earlier entry for that day.
    """
    entry = db.query(MoodEntry).filter(
        MoodEntry.user_id == user_id,
        MoodEntry.entry_date == day,
    ).first()

    if entry:
        entry.mood = mood
        entry.note = note
        logger.debug(f"Replacing mood entry for {user_id} on {day}")
    else:
        entry = MoodEntry(user_id=user_id, entry_date=day, mood=mood, note=note)
        db.add(entry)

    db.flush()
    return entry


def list_moods(db: Session, user_id: str) -> List[MoodEntry]:
    """Mood entries, newest first."""
    return db.query(MoodEntry).filter(
        MoodEntry.user_id == user_id,
    ).order_by(MoodEntry.entry_date.desc()).all()


def list_purchases(db: Session, user_id: str) -> List[PurchasedItem]:
    return db.query(PurchasedItem).filter(
        PurchasedItem.user_id == user_id,
    ).order_by(PurchasedItem.purchased_at, PurchasedItem.id).all()


def sum_purchase_prices(db: Session, user_id: str) -> int:
    total = db.query(func.sum(PurchasedItem.price_paid)).filter(
        PurchasedItem.user_id == user_id,
    ).scalar()
    return int(total or 0)


def record_purchase(db: Session, user_id: str, item_id: str, price: int) -> PurchasedItem:
    """
    Add an owned item.

    Raises:
        ValidationError: If the user already owns the item.
    """
    owned = db.query(PurchasedItem.id).filter(
        PurchasedItem.user_id == user_id,
        PurchasedItem.item_id == item_id,
    ).first()
    if owned:
        raise ValidationError(
            f"Item {item_id} is already owned",
            field="item_id",
            value=item_id,
            user_id=user_id,
        )

    purchase = PurchasedItem(user_id=user_id, item_id=item_id, price_paid=price)
    db.add(purchase)
    db.flush()
    return purchase
