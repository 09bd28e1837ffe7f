from datetime import date, datetime, timezone

from dateutil.relativedelta import relativedelta

_MONTH_NAMES = [
    "", "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def get_month_name(month: int) -> str:
    """Return abbreviated month name (1-indexed). E.g. 1 -> 'Jan'."""
    if 1 <= month <= 12:
        return _MONTH_NAMES[month]
    raise ValueError(f"Invalid month: {month}")


def first_of_month(value: date) -> date:
    """Normalise any date to the first day of its month (budget month key)."""
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    return value + relativedelta(months=months)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
