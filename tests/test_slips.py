from datetime import date

from pledge_tracker.entities import DaysOfWeek, EveryNDays, Monthly, TimesPerWeek, Weekly
from pledge_tracker.slips import find_pending_reasons

D = date.fromisoformat


def pairs(pending):
    return [(p.habit_id, p.date) for p in pending]


def test_daily_checks_yesterday(make_habit):
    habit = make_habit()
    assert pairs(find_pending_reasons([habit], D("2024-01-10"))) == [("habit-1", D("2024-01-09"))]


def test_daily_resolved_yesterday_is_not_flagged(make_habit):
    completed = make_habit(id="a", completed=["2024-01-09"])
    missed = make_habit(id="b", missed=["2024-01-09"])
    assert find_pending_reasons([completed, missed], D("2024-01-10")) == []


def test_nothing_before_creation(make_habit):
    habit = make_habit(created="2024-01-10")
    assert find_pending_reasons([habit], D("2024-01-10")) == []


def test_stored_pending_days_are_included(make_habit):
    habit = make_habit(pending=["2024-01-03"], completed=["2024-01-09"])
    pending = find_pending_reasons([habit], D("2024-01-10"))
    assert pairs(pending) == [("habit-1", D("2024-01-03"))]
    assert pending[0].habit_title == "Morning run"


def test_weekly_checks_last_occurrence(make_habit):
    habit = make_habit(Weekly(), created="2024-01-01")
    assert pairs(find_pending_reasons([habit], D("2024-01-10"))) == [("habit-1", D("2024-01-08"))]
    # On the due day itself the previous week is checked
    assert pairs(find_pending_reasons([habit], D("2024-01-08"))) == [("habit-1", D("2024-01-01"))]


def test_monthly_checks_last_occurrence(make_habit):
    habit = make_habit(Monthly(), created="2024-01-31")
    assert pairs(find_pending_reasons([habit], D("2024-03-10"))) == [("habit-1", D("2024-02-29"))]
    assert pairs(find_pending_reasons([habit], D("2024-03-31"))) == [("habit-1", D("2024-02-29"))]


def test_monthly_steps_back_across_year_end(make_habit):
    habit = make_habit(Monthly(), created="2023-12-31")
    assert pairs(find_pending_reasons([habit], D("2024-01-15"))) == [("habit-1", D("2023-12-31"))]


def test_days_of_week_scans_trailing_week(make_habit):
    habit = make_habit(DaysOfWeek(frozenset({0, 2})), created="2023-12-01", completed=["2024-01-08"])
    # Thursday; Monday the 8th was done, Wednesday the 10th was not
    assert pairs(find_pending_reasons([habit], D("2024-01-11"))) == [("habit-1", D("2024-01-10"))]


def test_interval_checks_last_occurrence(make_habit):
    habit = make_habit(EveryNDays(3), created="2024-01-01")
    assert pairs(find_pending_reasons([habit], D("2024-01-09"))) == [("habit-1", D("2024-01-07"))]


def test_quota_patterns_are_not_scanned(make_habit):
    habit = make_habit(TimesPerWeek(3))
    assert find_pending_reasons([habit], D("2024-01-10")) == []


def test_inactive_habits_are_skipped(make_habit):
    habit = make_habit(is_active=False, pending=["2024-01-03"])
    assert find_pending_reasons([habit], D("2024-01-10")) == []


def test_repeated_runs_agree(make_habit):
    habits = [make_habit(id="a"), make_habit(Weekly(), id="b"), make_habit(id="c", pending=["2024-01-02"])]
    first = find_pending_reasons(habits, D("2024-01-10"))
    second = find_pending_reasons(habits, D("2024-01-10"))
    assert pairs(first) == pairs(second)
    assert len(first) == 4
