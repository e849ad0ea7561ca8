"""Tests for the toggle coordinator"""
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from habitcoin.database import build_engine, init_db
from habitcoin.exceptions import NotFoundError, PersistenceError, ValidationError
from habitcoin.models.db_models import Habit, HabitCompletion, User, UserStats
from habitcoin.services import ledger, sync
from habitcoin.services.completions import toggle_completion, user_lock
from habitcoin.services.progression import get_or_create_stats, verify_user_stats
from habitcoin.services.sync import load_all

from conftest import TODAY


def stats_tuple(db, user_id):
    db.expire_all()
    stats = db.query(UserStats).filter(UserStats.user_id == user_id).one()
    return (stats.total_coins, stats.total_habits_completed, stats.current_streak, stats.level)


def test_toggle_adds_completion_and_reward(db, user, make_habit):
    habit = make_habit(priority="medium")

    result = toggle_completion(db, user.id, habit.id, TODAY, TODAY)

    assert result.completed is True
    assert result.coins_delta == 20
    assert ledger.has_completion(db, habit.id, TODAY)
    assert stats_tuple(db, user.id) == (20, 1, 1, 1)


def test_toggle_twice_restores_everything(db, user, make_habit):
    habit = make_habit(priority="high")
    other = make_habit(name="Run", priority="low")
    for offset in range(3):
        toggle_completion(db, user.id, other.id, TODAY - timedelta(days=offset), TODAY)
    toggle_completion(db, user.id, habit.id, TODAY - timedelta(days=1), TODAY)

    state_before = load_all(db, user, TODAY)
    stats_before = stats_tuple(db, user.id)

    first = toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    second = toggle_completion(db, user.id, habit.id, TODAY, TODAY)

    assert first.completed is True
    assert second.completed is False
    assert first.coins_delta == -second.coins_delta == 30
    assert stats_tuple(db, user.id) == stats_before
    assert load_all(db, user, TODAY) == state_before


def test_toggle_twice_on_existing_completion_restores_everything(db, user, make_habit):
    habit = make_habit()
    toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    state_before = load_all(db, user, TODAY)

    toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    assert load_all(db, user, TODAY).habits[0].completed_dates == []
    toggle_completion(db, user.id, habit.id, TODAY, TODAY)

    assert load_all(db, user, TODAY) == state_before


def test_high_priority_rewards_add_up(db, user, make_habit):
    habit = make_habit(priority="high")
    n = 12

    for offset in range(n):
        toggle_completion(db, user.id, habit.id, TODAY - timedelta(days=offset), TODAY)

    coins, completed, streak, level = stats_tuple(db, user.id)
    assert coins == 30 * n
    assert completed == n
    assert streak == n
    assert level == 2


def test_tenth_completion_levels_up(db, user, make_habit):
    habits = [make_habit(name=f"Habit {i}") for i in range(10)]

    for habit in habits[:9]:
        result = toggle_completion(db, user.id, habit.id, TODAY, TODAY)
        assert result.level_after == 1

    result = toggle_completion(db, user.id, habits[9].id, TODAY, TODAY)

    assert result.level_before == 1
    assert result.level_after == 2
    assert result.level_changed


def test_undo_drops_level_back(db, user, make_habit):
    habit = make_habit()
    for offset in range(10):
        toggle_completion(db, user.id, habit.id, TODAY - timedelta(days=offset), TODAY)
    assert stats_tuple(db, user.id)[3] == 2

    result = toggle_completion(db, user.id, habit.id, TODAY - timedelta(days=4), TODAY)

    assert result.level_after == 1
    assert stats_tuple(db, user.id) == (180, 9, 4, 1)


def test_toggle_unknown_habit_writes_nothing(db, user):
    with pytest.raises(NotFoundError):
        toggle_completion(db, user.id, 999, TODAY, TODAY)

    assert db.query(HabitCompletion).count() == 0
    assert stats_tuple(db, user.id) == (0, 0, 0, 1)


def test_toggle_other_users_habit_is_not_found(db, user, make_habit):
    from habitcoin.models.db_models import User

    stranger = User(id="user-2", email="other@example.com")
    db.add(stranger)
    db.commit()
    habit = make_habit(owner=stranger)

    with pytest.raises(NotFoundError):
        toggle_completion(db, user.id, habit.id, TODAY, TODAY)


def test_toggle_future_day_rejected(db, user, make_habit):
    habit = make_habit()

    with pytest.raises(ValidationError):
        toggle_completion(db, user.id, habit.id, TODAY + timedelta(days=1), TODAY)

    assert not ledger.has_completion(db, habit.id, TODAY + timedelta(days=1))


def test_failed_commit_applies_nothing_and_retry_applies_once(db, user, make_habit, monkeypatch):
    habit = make_habit(priority="high")
    real_commit = db.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))
        return real_commit()

    monkeypatch.setattr(db, "commit", flaky_commit)

    with pytest.raises(PersistenceError):
        toggle_completion(db, user.id, habit.id, TODAY, TODAY)

    assert not ledger.has_completion(db, habit.id, TODAY)
    assert stats_tuple(db, user.id) == (0, 0, 0, 1)

    result = toggle_completion(db, user.id, habit.id, TODAY, TODAY)

    assert result.completed is True
    assert stats_tuple(db, user.id) == (30, 1, 1, 1)


def test_user_lock_is_per_user():
    assert user_lock("a") is user_lock("a")
    assert user_lock("a") is not user_lock("b")


def test_undo_with_count_behind_ledger_re_derives_count(db, user, make_habit):
    habit = make_habit()
    toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    db.query(UserStats).filter(UserStats.user_id == user.id).update({"total_habits_completed": 0})
    db.commit()

    undo = toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    assert undo.completed is False
    assert stats_tuple(db, user.id) == (0, 0, 0, 1)

    redo = toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    assert redo.completed is True
    assert stats_tuple(db, user.id) == (20, 1, 1, 1)
    assert verify_user_stats(db, user.id, TODAY)


def test_undo_with_count_behind_ledger_never_goes_negative(db, user, make_habit):
    read = make_habit(name="Read")
    run = make_habit(name="Run", priority="high")
    toggle_completion(db, user.id, read.id, TODAY, TODAY)
    toggle_completion(db, user.id, run.id, TODAY, TODAY)
    db.query(UserStats).filter(UserStats.user_id == user.id).update({"total_habits_completed": 0})
    db.commit()

    toggle_completion(db, user.id, read.id, TODAY, TODAY)

    coins, completed, _, _ = stats_tuple(db, user.id)
    assert completed == 1
    assert coins == 30


def test_concurrent_toggles_stay_consistent(tmp_path):
    """Many threads toggling for one user leave stats equal to the ledger"""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as session:
        session.add(User(id="user-1", email="test@example.com", timezone="UTC"))
        session.flush()
        get_or_create_stats(session, "user-1")
        habits = [
            Habit(user_id="user-1", name="Read", priority="medium", coins_per_completion=20),
            Habit(user_id="user-1", name="Run", priority="high", coins_per_completion=30),
        ]
        session.add_all(habits)
        session.commit()
        habit_ids = [h.id for h in habits]

    def toggle(habit_id, offset):
        with Session() as session:
            owner = session.get(User, "user-1")
            day = (TODAY - timedelta(days=offset)).isoformat()
            sync.toggle_habit_completion(session, owner, habit_id, day, TODAY)

    # Every (habit, day) pair is toggled an odd number of times
    jobs = [
        (habit_id, offset)
        for _ in range(3)
        for habit_id in habit_ids
        for offset in range(5)
    ]
    with ThreadPoolExecutor(max_workers=8) as pool:
        for future in [pool.submit(toggle, *job) for job in jobs]:
            future.result()

    try:
        with Session() as session:
            assert verify_user_stats(session, "user-1", TODAY)
            assert stats_tuple(session, "user-1") == (250, 10, 5, 2)
            assert ledger.count_completions(session, "user-1") == 10
    finally:
        engine.dispose()
