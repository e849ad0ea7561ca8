"""Tests for the sync gateway (load-all and write-then-reload mutations)"""
import pytest
from datetime import timedelta

from habitcoin.exceptions import NotFoundError, ValidationError
from habitcoin.models.db_models import HabitCompletion
from habitcoin.models.schemas import (
    HabitCreate,
    HabitUpdate,
    MoodEntryCreate,
    UserStatsUpdate,
)
from habitcoin.services import sync
from habitcoin.services.progression import verify_user_stats

from conftest import TODAY


def day(offset):
    return (TODAY - timedelta(days=offset)).isoformat()


def test_load_all_for_new_user(db, user):
    state = sync.load_all(db, user, TODAY)

    assert state.habits == []
    assert state.user_stats.total_coins == 0
    assert state.user_stats.level == 1
    assert state.mood_entries == []
    assert state.purchased_items == []
    assert state.loading is False


def test_save_habit_fixes_reward_from_priority(db, user):
    state = sync.save_habit(db, user, HabitCreate(name="  Meditate ", priority="high"), TODAY)

    habit = state.habits[0]
    assert habit.name == "Meditate"
    assert habit.priority == "high"
    assert habit.coins_per_completion == 30
    assert habit.completed_dates == []
    assert habit.streak == habit.longest_streak == 0


@pytest.mark.parametrize("name", ["", "   "])
def test_save_habit_rejects_blank_name(db, user, name):
    with pytest.raises(ValidationError):
        sync.save_habit(db, user, HabitCreate(name=name), TODAY)

    assert sync.load_all(db, user, TODAY).habits == []


def test_habits_listed_newest_first(db, user):
    sync.save_habit(db, user, HabitCreate(name="First"), TODAY)
    state = sync.save_habit(db, user, HabitCreate(name="Second"), TODAY)

    assert [h.name for h in state.habits] == ["Second", "First"]


def test_update_habit_keeps_reward(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Walk", priority="low"), TODAY).habits[0].id

    state = sync.update_habit(db, user, habit_id, HabitUpdate(name="Long walk", priority="high"), TODAY)

    habit = state.habits[0]
    assert habit.name == "Long walk"
    assert habit.priority == "high"
    assert habit.coins_per_completion == 10


def test_update_unknown_habit(db, user):
    with pytest.raises(NotFoundError):
        sync.update_habit(db, user, 42, HabitUpdate(name="x"), TODAY)


def test_toggle_reloads_derived_streaks(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Read"), TODAY).habits[0].id
    for offset in (0, 1, 3, 4):
        state = sync.toggle_habit_completion(db, user, habit_id, day(offset), TODAY)

    habit = state.habits[0]
    assert habit.completed_dates == [day(4), day(3), day(1), day(0)]
    assert habit.streak == 2
    assert habit.longest_streak == 2
    assert state.user_stats.current_streak == 2
    assert state.user_stats.total_coins == 80


def test_toggle_defaults_to_today(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Read"), TODAY).habits[0].id

    state = sync.toggle_habit_completion(db, user, habit_id, None, TODAY)

    assert state.habits[0].completed_dates == [TODAY.isoformat()]


def test_toggle_rejects_malformed_date(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Read"), TODAY).habits[0].id

    with pytest.raises(ValidationError):
        sync.toggle_habit_completion(db, user, habit_id, "05/01/2024", TODAY)


def test_delete_habit_cascades_and_takes_back_rewards(db, user):
    keep = sync.save_habit(db, user, HabitCreate(name="Keep", priority="low"), TODAY).habits[0].id
    drop = sync.save_habit(db, user, HabitCreate(name="Drop", priority="high"), TODAY).habits[0].id
    sync.toggle_habit_completion(db, user, keep, day(1), TODAY)
    sync.toggle_habit_completion(db, user, drop, day(0), TODAY)
    sync.toggle_habit_completion(db, user, drop, day(1), TODAY)

    state = sync.delete_habit(db, user, drop, TODAY)

    assert [h.id for h in state.habits] == [keep]
    assert db.query(HabitCompletion).filter(HabitCompletion.habit_id == drop).count() == 0
    assert state.user_stats.total_coins == 10
    assert state.user_stats.total_habits_completed == 1
    assert state.user_stats.current_streak == 0
    assert verify_user_stats(db, user.id, TODAY)


def test_save_mood_replaces_same_day(db, user):
    sync.save_mood_entry(db, user, day(0), MoodEntryCreate(mood=2, note="rough"), TODAY)
    state = sync.save_mood_entry(db, user, day(0), MoodEntryCreate(mood=5, note="  "), TODAY)

    assert len(state.mood_entries) == 1
    assert state.mood_entries[0].mood == 5
    assert state.mood_entries[0].note is None


def test_purchase_deducts_coins(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Gym", priority="high"), TODAY).habits[0].id
    for offset in range(5):
        sync.toggle_habit_completion(db, user, habit_id, day(offset), TODAY)

    state = sync.purchase_item(db, user, "5", TODAY)

    assert state.purchased_items == ["5"]
    assert state.user_stats.total_coins == 0
    assert verify_user_stats(db, user.id, TODAY)


def test_purchase_requires_enough_coins(db, user):
    with pytest.raises(ValidationError):
        sync.purchase_item(db, user, "1", TODAY)

    assert sync.load_all(db, user, TODAY).purchased_items == []


def test_purchase_unknown_item(db, user):
    with pytest.raises(NotFoundError):
        sync.purchase_item(db, user, "99", TODAY)


def test_purchase_twice_rejected(db, user):
    sync.update_user_stats(db, user, UserStatsUpdate(total_coins=1000), TODAY)
    sync.purchase_item(db, user, "2", TODAY)

    with pytest.raises(ValidationError):
        sync.purchase_item(db, user, "2", TODAY)

    assert sync.load_all(db, user, TODAY).user_stats.total_coins == 800


def test_recompute_restores_manual_edits(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Read"), TODAY).habits[0].id
    sync.toggle_habit_completion(db, user, habit_id, day(0), TODAY)
    sync.update_user_stats(db, user, UserStatsUpdate(total_coins=5000, total_habits_completed=40), TODAY)

    state = sync.recompute_user_stats(db, user, TODAY)

    assert state.user_stats.total_coins == 20
    assert state.user_stats.total_habits_completed == 1
    assert state.user_stats.level == 1


def test_update_stats_rejects_count_below_ledger(db, user):
    habit_id = sync.save_habit(db, user, HabitCreate(name="Read"), TODAY).habits[0].id
    sync.toggle_habit_completion(db, user, habit_id, day(0), TODAY)
    sync.toggle_habit_completion(db, user, habit_id, day(1), TODAY)

    with pytest.raises(ValidationError) as exc:
        sync.update_user_stats(db, user, UserStatsUpdate(total_habits_completed=1), TODAY)

    assert exc.value.field == "total_habits_completed"
    assert sync.load_all(db, user, TODAY).user_stats.total_habits_completed == 2
    assert verify_user_stats(db, user.id, TODAY)
