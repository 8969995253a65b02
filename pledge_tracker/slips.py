"""Find past due days that were never completed or marked missed."""

import logging

from .dates import add_days, days_between, month_occurrence, months_back
from .entities import DayStatus, Daily, DaysOfWeek, EveryNDays, Monthly, PendingReason, Weekly

logger = logging.getLogger(__name__)


def _last_weekly(habit, today):
    back = (today.weekday() - habit.created_on.weekday()) % 7 or 7
    return [add_days(today, -back)]


def _last_monthly(habit, today):
    this_month = month_occurrence(habit.created_on, today)
    if this_month < today:
        return [this_month]
    return [month_occurrence(habit.created_on, months_back(today))]


def _last_interval(habit, today, interval):
    elapsed = days_between(habit.created_on, today)
    if elapsed < 1:
        return []
    return [add_days(habit.created_on, (elapsed - 1) // interval * interval)]


def candidate_dates(habit, today):
    """Past days worth checking for ``habit``, oldest first.

    Quota patterns yield nothing since no single day is owed.
    """
    recurrence = habit.recurrence
    if isinstance(recurrence, Daily):
        return [add_days(today, -1)]
    if isinstance(recurrence, Weekly):
        return _last_weekly(habit, today)
    if isinstance(recurrence, Monthly):
        return _last_monthly(habit, today)
    if isinstance(recurrence, DaysOfWeek):
        window = [add_days(today, -back) for back in range(7, 0, -1)]
        return [d for d in window if d.weekday() in recurrence.days]
    if isinstance(recurrence, EveryNDays):
        return _last_interval(habit, today, recurrence.interval)
    return []


def is_slipped(habit, day, today):
    status = habit.status_on(day)
    return (day < today and day >= habit.created_on
            and status not in (DayStatus.COMPLETED, DayStatus.MISSED))


def find_pending_reasons(habits, today):
    """Days awaiting a miss explanation across all active habits.

    Combines the stored pending-reason days with freshly detected slips.
    Nothing is written back, so repeated calls agree.
    """
    pending = []
    for habit in habits:
        if not habit.is_active:
            continue
        days = set(habit.pending_reason_dates)
        days.update(d for d in candidate_dates(habit, today) if is_slipped(habit, d, today))
        pending.extend(PendingReason(habit.id, d, habit.title) for d in sorted(days))
    if pending:
        logger.debug(f"{len(pending)} day(s) awaiting a miss reason as of {today}")
    return pending
