from datetime import date, timedelta

import pytest

from pledge_tracker.entities import (DaysOfWeek, EveryNDays, Monthly, TimesInPeriod, TimesPerMonth,
                                     TimesPerWeek, Unscheduled, Weekly, recurrence_from_record)
from pledge_tracker.schedule import habits_due_on, is_due

D = date.fromisoformat


def days_from(start, count):
    return [D(start) + timedelta(days=i) for i in range(count)]


def test_daily_without_history_is_always_due(make_habit):
    habit = make_habit()
    assert all(is_due(habit, day) for day in days_from("2024-01-01", 90))


def test_not_due_before_creation(make_habit):
    assert not is_due(make_habit(created="2024-01-10"), D("2024-01-09"))


@pytest.mark.parametrize("history", ["completed", "missed", "pending"])
def test_resolved_day_is_not_due(make_habit, history):
    habit = make_habit(**{history: ["2024-01-05"]})
    assert not is_due(habit, D("2024-01-05"))
    assert is_due(habit, D("2024-01-06"))


def test_weekly_only_on_creation_weekday(make_habit):
    # 2024-01-01 is a Monday
    habit = make_habit(Weekly(), created="2024-01-01")
    for day in days_from("2024-01-02", 28):
        assert is_due(habit, day) == (day.weekday() == 0), day


def test_monthly_same_day_of_month(make_habit):
    habit = make_habit(Monthly(), created="2024-01-15")
    due = [d for d in days_from("2024-01-16", 60) if is_due(habit, d)]
    assert due == [D("2024-02-15"), D("2024-03-15")]


def test_monthly_anchor_clamps_to_short_month(make_habit):
    habit = make_habit(Monthly(), created="2024-01-31")
    assert is_due(habit, D("2024-02-29"))
    assert not is_due(habit, D("2024-02-28"))
    assert is_due(habit, D("2024-04-30"))
    assert is_due(habit, D("2024-05-31"))
    assert not is_due(habit, D("2024-05-30"))


def test_monthly_anchor_across_year_end(make_habit):
    habit = make_habit(Monthly(), created="2023-12-31")
    assert is_due(habit, D("2024-01-31"))
    assert is_due(habit, D("2024-02-29"))
    assert not is_due(habit, D("2023-11-30"))


def test_days_of_week(make_habit):
    habit = make_habit(DaysOfWeek(frozenset({0, 2})))
    due = [d for d in days_from("2024-01-01", 7) if is_due(habit, d)]
    assert due == [D("2024-01-01"), D("2024-01-03")]


def test_every_n_days(make_habit):
    habit = make_habit(EveryNDays(3))
    due = [d for d in days_from("2024-01-01", 10) if is_due(habit, d)]
    assert due == [D("2024-01-01"), D("2024-01-04"), D("2024-01-07"), D("2024-01-10")]


def test_times_per_week_resets_on_sunday(make_habit):
    habit = make_habit(TimesPerWeek(2), completed=["2024-01-08", "2024-01-09"])
    # Week of Sunday 2024-01-07 through Saturday 2024-01-13 is used up
    for day in days_from("2024-01-10", 4):
        assert not is_due(habit, day)
    assert is_due(habit, D("2024-01-14"))


def test_times_per_week_due_until_quota_met(make_habit):
    habit = make_habit(TimesPerWeek(2), completed=["2024-01-08"])
    assert is_due(habit, D("2024-01-10"))


def test_times_per_month(make_habit):
    habit = make_habit(TimesPerMonth(3), completed=["2024-01-02", "2024-01-09", "2024-01-16"])
    assert not is_due(habit, D("2024-01-20"))
    assert is_due(habit, D("2024-02-01"))


def test_times_in_trailing_period(make_habit):
    habit = make_habit(TimesInPeriod(times=2, days=7), completed=["2024-01-05", "2024-01-08"])
    assert not is_due(habit, D("2024-01-10"))
    assert not is_due(habit, D("2024-01-11"))
    assert is_due(habit, D("2024-01-12"))


def test_empty_descriptor_is_never_due(make_habit):
    habit = make_habit(Unscheduled())
    assert not any(is_due(habit, d) for d in days_from("2024-01-01", 30))


def test_descriptor_precedence():
    assert recurrence_from_record("custom", {"interval": 2, "times_per_week": 3, "days_of_week": [1]}) == EveryNDays(2)
    assert recurrence_from_record("custom", {"times_per_month": 4, "days_of_week": [1]}) == TimesPerMonth(4)
    assert recurrence_from_record("custom", {"times_in_period": {"times": 2, "days": 5},
                                             "days_of_week": [1]}) == TimesInPeriod(2, 5)
    assert recurrence_from_record("custom", {"days_of_week": [1, 3]}) == DaysOfWeek(frozenset({1, 3}))
    assert recurrence_from_record("custom", {}) == Unscheduled()
    assert recurrence_from_record("custom", None) == Unscheduled()


def test_habits_due_on_skips_inactive(make_habit):
    active = make_habit(id="a")
    inactive = make_habit(id="b", is_active=False)
    assert habits_due_on([active, inactive], D("2024-01-03")) == [active]
