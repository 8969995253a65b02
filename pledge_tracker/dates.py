"""Calendar-day helpers. Habit logic works on dates, never on instants."""

from datetime import date, datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta


def utcnow():
    return datetime.now(timezone.utc)


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def date_string(day):
    return day.isoformat()


def parse_timestamp(value):
    if value is None or isinstance(value, datetime):
        return value
    stamp = datetime.fromisoformat(value)
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


def timestamp_string(stamp):
    return stamp.isoformat() if stamp is not None else None


def add_days(day, days):
    return day + timedelta(days=days)


def days_between(start, end):
    return (end - start).days


def week_start(day):
    # Weeks start on Sunday
    return day - timedelta(days=(day.weekday() + 1) % 7)


def same_month(a, b):
    return a.year == b.year and a.month == b.month


def months_back(day, months=1):
    return day - relativedelta(months=months)


def month_occurrence(anchor, day):
    """The monthly repeat of ``anchor`` that falls in ``day``'s month.

    Anchors past the end of a short month land on its last day
    (Jan 31 + 1 month = Feb 29 in 2024).
    """
    return anchor + relativedelta(months=(day.year - anchor.year) * 12 + day.month - anchor.month)
