"""
Calendar Day Helpers

Completions and moods are keyed by calendar day (YYYY-MM-DD), never by
timestamp. "Today" is the UTC day unless the account has its own
IANA timezone.
"""
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habitcoin.exceptions import ValidationError

DAY_FORMAT = "%Y-%m-%d"

ONE_DAY = timedelta(days=1)


def format_day(value: Union[date, datetime]) -> str:
    """Render a date or datetime as YYYY-MM-DD."""
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(DAY_FORMAT)


def parse_day(text: Union[str, date], field: str = "date") -> date:
    """
    Parse a strict YYYY-MM-DD string.

    Raises:
        ValidationError: If the text is not a valid calendar day.
    """
    if isinstance(text, datetime):
        return text.date()
    if isinstance(text, date):
        return text
    try:
        if len(text) != 10:
            raise ValueError(text)
        return datetime.strptime(text, DAY_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError(
            f"Expected a calendar day formatted YYYY-MM-DD, got {text!r}",
            field=field,
            value=text,
        )


def today_for(timezone_name: Optional[str] = "UTC", now: Optional[datetime] = None) -> date:
    """
    Current calendar day for an account.

    With "UTC" this truncates the UTC timestamp. Other zones give the
    user-local day.

    Args:
        timezone_name: IANA timezone name.
        now: Override the current instant (for testing).
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if not timezone_name or timezone_name.upper() == "UTC":
        return now.astimezone(timezone.utc).date()

    try:
        zone = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(
            f"Unknown timezone: {timezone_name}",
            field="timezone",
            value=timezone_name,
        )
    return now.astimezone(zone).date()


def parse_month(text: str, field: str = "month") -> Tuple[int, int]:
    """
    Parse a strict YYYY-MM month.

    Raises:
        ValidationError: If the text is not a valid month.
    """
    try:
        if len(text) != 7:
            raise ValueError(text)
        first = datetime.strptime(f"{text}-01", DAY_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError(
            f"Expected a month formatted YYYY-MM, got {text!r}",
            field=field,
            value=text,
        )
    return first.year, first.month


def month_days(year: int, month: int) -> List[date]:
    """Every calendar day of the month, in order."""
    day = date(year, month, 1)
    days = []
    while day.month == month:
        days.append(day)
        day += ONE_DAY
    return days
