"""
Ledger audit tool.

Compares every user's stored stats with the values rebuilt from the
completion ledger and purchases, and optionally repairs drifted rows.

    python -m habitcoin.inspect_db [--repair]
"""
import sys
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from habitcoin.database import SessionLocal
from habitcoin.models.db_models import User
from habitcoin.services.calendar import today_for
from habitcoin.services.progression import (
    get_or_create_stats,
    recompute_stats,
    repair_user_stats,
    snapshot_of,
    verify_user_stats,
)

COLUMNS = ["user_id", "field", "stored", "rebuilt"]


def audit(db: Session, repair: bool = False, today: Optional[date] = None) -> List[tuple]:
    """
    Find stats fields that disagree with the ledger.

    Returns:
        List of (user_id, field, stored, rebuilt) rows.
    """
    drift = []
    for user in db.query(User).order_by(User.id):
        day = today or today_for(user.timezone)
        if verify_user_stats(db, user.id, day):
            continue

        stored = snapshot_of(get_or_create_stats(db, user.id)).to_dict()
        rebuilt = recompute_stats(db, user.id, day).to_dict()

        for field, value in rebuilt.items():
            if stored[field] != value:
                drift.append((user.id, field, stored[field], value))

        if repair and stored != rebuilt:
            repair_user_stats(db, user.id, day)

    if repair:
        db.commit()
    return drift


def print_table(rows: List[tuple]) -> None:
    if not rows:
        print("(No drift)")
        return

    formatted = [[str(x) for x in row] for row in rows]
    widths = [len(h) for h in COLUMNS]
    for row in formatted:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], len(val))

    header_line = " | ".join(h.ljust(w) for h, w in zip(COLUMNS, widths))
    print(header_line)
    print("-" * len(header_line))
    for row in formatted:
        print(" | ".join(val.ljust(w) for val, w in zip(row, widths)))


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    repair = "--repair" in argv

    db = SessionLocal()
    try:
        rows = audit(db, repair=repair)
    finally:
        db.close()

    print_table(rows)
    if rows and repair:
        print(f"Repaired {len({r[0] for r in rows})} user(s)")
    return 1 if rows and not repair else 0


if __name__ == "__main__":
    sys.exit(main())
