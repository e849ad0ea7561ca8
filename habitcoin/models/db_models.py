"""
Database ORM Models

SQLAlchemy models for the habit ledger:
- User: Firebase-authenticated users
- Habit: A tracked habit with its fixed per-completion reward
- HabitCompletion: One row per habit per completed calendar day
- UserStats: Derived totals (coins, completions, streak, level)
- MoodEntry: At most one mood per user per day
- PurchasedItem: Owned shop items, never removed
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Integer, Date, DateTime, Text,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from habitcoin.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """
    User account linked to Firebase Auth.

    The id is the Firebase UID, not auto-generated.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # Firebase UID
    email = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    timezone = Column(String, default="UTC")
    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    habits = relationship("Habit", back_populates="user", cascade="all, delete-orphan")
    stats = relationship("UserStats", back_populates="user", uselist=False, cascade="all, delete-orphan")
    mood_entries = relationship("MoodEntry", back_populates="user", cascade="all, delete-orphan")
    purchased_items = relationship("PurchasedItem", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email}>"


class Habit(Base):
    """
    A habit the user tracks.

    coins_per_completion is derived from priority when the habit is
    created and never changes afterwards, so undoing an old completion
    always reverses exactly the reward it granted.
    """
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, default="")
    priority = Column(String, nullable=False, default="medium")
    coins_per_completion = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    user = relationship("User", back_populates="habits")
    completions = relationship(
        "HabitCompletion",
        back_populates="habit",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("priority IN ('low', 'medium', 'high')", name="check_priority"),
        CheckConstraint("coins_per_completion >= 0", name="check_coins_non_negative"),
        Index("idx_habits_user", "user_id"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self):
        return f"<Habit {self.name} ({self.priority})>"


class HabitCompletion(Base):
    """
    Ledger row: the habit was completed on this calendar day.

    Removing the row is how a completion is undone.
    """
    __tablename__ = "habit_completions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    habit_id = Column(Integer, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    completed_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    habit = relationship("Habit", back_populates="completions")

    __table_args__ = (
        UniqueConstraint("habit_id", "completed_date", name="uq_completion_habit_date"),
        Index("idx_completions_user_date", "user_id", "completed_date"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self):
        return f"<HabitCompletion habit={self.habit_id} {self.completed_date}>"


class UserStats(Base):
    """
    Derived per-user totals.

    Maintained incrementally by the toggle path; can always be rebuilt
    from habit_completions and purchased_items.
    """
    __tablename__ = "user_stats"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    total_coins = Column(Integer, nullable=False, default=0)
    total_habits_completed = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="stats")

    __table_args__ = (
        CheckConstraint("total_habits_completed >= 0", name="check_completed_non_negative"),
        CheckConstraint("current_streak >= 0", name="check_streak_non_negative"),
        CheckConstraint("level >= 1", name="check_level_min"),
    )

    def __repr__(self):
        return f"<UserStats {self.user_id} L{self.level} coins:{self.total_coins}>"


class MoodEntry(Base):
    """
    Daily mood (1-5) with an optional note.

    Saving again for the same day replaces the entry.
    """
    __tablename__ = "mood_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    entry_date = Column(Date, nullable=False)
    mood = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    user = relationship("User", back_populates="mood_entries")

    __table_args__ = (
        UniqueConstraint("user_id", "entry_date", name="uq_mood_user_date"),
        CheckConstraint("mood >= 1 AND mood <= 5", name="check_mood_range"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self):
        return f"<MoodEntry {self.entry_date} mood={self.mood}>"


class PurchasedItem(Base):
    """
    Owned shop item.

    price_paid keeps the price at purchase time so the coin total can be
    rebuilt even if the catalog changes later.
    """
    __tablename__ = "purchased_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(String, nullable=False)
    price_paid = Column(Integer, nullable=False, default=0)
    purchased_at = Column(DateTime, default=_utcnow)

    user = relationship("User", back_populates="purchased_items")

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_purchase_user_item"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self):
        return f"<PurchasedItem {self.item_id} ({self.price_paid})>"

