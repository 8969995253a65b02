from .dates import add_days, days_between, month_occurrence, same_month, week_start
from .entities import (Daily, DaysOfWeek, EveryNDays, Monthly, TimesInPeriod, TimesPerMonth,
                       TimesPerWeek, Weekly)


def occurs_on(habit, day):
    """Whether the habit's calendar pattern lands on ``day``.

    Quota patterns (times per week/month/period) have no fixed days and
    never "occur"; use ``is_due`` for them.
    """
    recurrence = habit.recurrence
    anchor = habit.created_on
    if day < anchor:
        return False
    if isinstance(recurrence, Daily):
        return True
    if isinstance(recurrence, Weekly):
        return day.weekday() == anchor.weekday()
    if isinstance(recurrence, Monthly):
        return day == month_occurrence(anchor, day)
    if isinstance(recurrence, EveryNDays):
        return days_between(anchor, day) % recurrence.interval == 0
    if isinstance(recurrence, DaysOfWeek):
        return day.weekday() in recurrence.days
    return False


def completions_between(habit, start, end):
    return sum(1 for d in habit.completed_dates if start <= d <= end)


def is_due(habit, day):
    # A day is resolved at most once
    if day in habit.days:
        return False
    recurrence = habit.recurrence
    if isinstance(recurrence, TimesPerWeek):
        start = week_start(day)
        return day >= habit.created_on and completions_between(habit, start, add_days(start, 6)) < recurrence.times
    if isinstance(recurrence, TimesPerMonth):
        done = sum(1 for d in habit.completed_dates if same_month(d, day))
        return day >= habit.created_on and done < recurrence.times
    if isinstance(recurrence, TimesInPeriod):
        start = add_days(day, -(recurrence.days - 1))
        return day >= habit.created_on and completions_between(habit, start, day) < recurrence.times
    return occurs_on(habit, day)


def habits_due_on(habits, day):
    return [h for h in habits if h.is_active and is_due(h, day)]
