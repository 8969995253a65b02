"""Demonstration habits seeded into an empty account."""

from datetime import timedelta
from decimal import Decimal

from .entities import DayRecord, DayStatus, Daily, Habit, Weekly
from .streak import calculate_streak


def _habit(new_id, now, title, description, recurrence, pledge, age, completed, missed):
    today = now.date()
    days = {today - timedelta(days=n): DayRecord(DayStatus.MISSED) for n in missed}
    days.update({today - timedelta(days=n): DayRecord(DayStatus.COMPLETED) for n in completed})
    return Habit(
        id=new_id(),
        title=title,
        description=description,
        recurrence=recurrence,
        pledge_amount=Decimal(pledge),
        total_pledged=Decimal(pledge) * len(missed),
        created_at=now - timedelta(days=age),
        last_completed=now - timedelta(days=min(completed)) if completed else None,
        streak=calculate_streak([today - timedelta(days=n) for n in completed]),
        days=days,
    )


def build_sample_habits(new_id, now):
    return [
        _habit(new_id, now, "Morning Exercise", "Do 30 minutes of cardio or strength training",
               Daily(), "5", 7, completed=[6, 5, 3, 2, 1], missed=[7, 4]),
        _habit(new_id, now, "Read for 20 minutes", "Read books, articles, or educational content",
               Daily(), "3", 5, completed=[4, 2, 1], missed=[5, 3]),
        _habit(new_id, now, "Weekly Meal Prep", "Prepare healthy meals for the week",
               Weekly(), "10", 14, completed=[7], missed=[14]),
    ]
