import logging
from decimal import Decimal
from flask import jsonify

from . import app
from .auth import token_required
from .dates import add_days, date_string
from .entities import PaymentStatus, TimesInPeriod, TimesPerMonth, TimesPerWeek
from .errors import PersistenceError
from .habits_api import load_controller
from .schedule import occurs_on

logger = logging.getLogger(__name__)

WINDOW_DAYS = 30


def expected_completions(habit, start, end):
    """How many completions the habit asked for between ``start`` and ``end``."""
    start = max(start, habit.created_on)
    if start > end:
        return 0
    span = (end - start).days + 1
    recurrence = habit.recurrence
    if isinstance(recurrence, TimesPerWeek):
        return round(recurrence.times * span / 7)
    if isinstance(recurrence, TimesPerMonth):
        return round(recurrence.times * span / 30)
    if isinstance(recurrence, TimesInPeriod):
        return round(recurrence.times * span / recurrence.days)
    return sum(1 for i in range(span) if occurs_on(habit, add_days(start, i)))


def habit_summary(habit, start, end):
    completed = [d for d in habit.completed_dates if start <= d <= end]
    expected = expected_completions(habit, start, end)
    return {
        "id": habit.id,
        "title": habit.title,
        "frequency": habit.frequency.value,
        "total_completions": len(habit.completed_dates),
        "total_misses": len(habit.missed_dates),
        "streak": habit.streak,
        "total_pledged": str(habit.total_pledged),
        "completion_rate": min(1.0, len(completed) / expected) if expected > 0 else 0,
    }


def build_analysis(habits, payments, today):
    start = add_days(today, -WINDOW_DAYS)
    trend_labels = [date_string(add_days(start, i)) for i in range(WINDOW_DAYS + 1)]
    trend_data = {}
    for habit in habits:
        trend = [0] * (WINDOW_DAYS + 1)
        for day in habit.completed_dates:
            day_index = (day - start).days
            if 0 <= day_index <= WINDOW_DAYS:
                trend[day_index] += 1
        trend_data[habit.id] = trend

    completed = sum(len(h.completed_dates) for h in habits)
    missed = sum(len(h.missed_dates) for h in habits)
    charged = sum((p.amount for p in payments if p.status == PaymentStatus.COMPLETED), Decimal("0"))
    outstanding = sum((p.amount for p in payments if p.status == PaymentStatus.PENDING), Decimal("0"))
    return {
        "habits": [habit_summary(h, start, today) for h in habits],
        "trends": {
            "labels": trend_labels,
            "data": trend_data
        },
        "totals": {
            "total_habits": len(habits),
            "active_habits": sum(1 for h in habits if h.is_active),
            "completed": completed,
            "missed": missed,
            "success_rate": completed / (completed + missed) if completed + missed > 0 else 0,
            "average_streak": sum(h.streak for h in habits) / len(habits) if habits else 0,
            "total_pledged": str(sum((h.total_pledged for h in habits), Decimal("0"))),
            "total_charged": str(charged),
            "outstanding": str(outstanding),
        }
    }


@app.route("/api/habits/analysis", methods=["GET"])
@token_required
def get_analysis(user):
    try:
        controller = load_controller(user)
        analysis = build_analysis(controller.habits, controller.get_payments(), controller.today())
    except PersistenceError as e:
        logger.error(f"Database error fetching analysis: {str(e)}")
        return jsonify({"message": "Failed to fetch analysis"}), 500
    logger.debug(f"Analysis fetched for user {user.username}: {len(controller.habits)} habits")
    return jsonify(analysis), 200
