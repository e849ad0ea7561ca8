"""Tests for the ledger audit tool"""
from habitcoin.inspect_db import audit, print_table
from habitcoin.services.completions import toggle_completion
from habitcoin.services.progression import get_or_create_stats

from conftest import TODAY


def test_audit_clean_ledger(db, user, make_habit):
    habit = make_habit()
    toggle_completion(db, user.id, habit.id, TODAY, TODAY)

    assert audit(db, today=TODAY) == []


def test_audit_reports_and_repairs_drift(db, user, make_habit, capsys):
    habit = make_habit(priority="low")
    toggle_completion(db, user.id, habit.id, TODAY, TODAY)
    stats = get_or_create_stats(db, user.id)
    stats.total_coins = 500
    db.commit()

    drift = audit(db, today=TODAY)
    assert drift == [("user-1", "total_coins", 500, 10)]

    print_table(drift)
    assert "total_coins" in capsys.readouterr().out

    audit(db, repair=True, today=TODAY)

    assert audit(db, today=TODAY) == []
    assert get_or_create_stats(db, user.id).total_coins == 10
