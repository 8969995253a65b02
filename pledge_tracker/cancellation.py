"""Cancellation with a cooling-off window.

Active -> CancellationRequested -> Cancelled, or back to Active if the
request is withdrawn before the window elapses.
"""

import logging
import math
from datetime import timedelta

logger = logging.getLogger(__name__)

COOLING_OFF = timedelta(days=7)


def request_cancellation(habit, now):
    if habit.pending_cancellation or not habit.is_active:
        return {}
    return {"cancellation_requested_at": now}


def cancel_cancellation_request(habit):
    if not habit.pending_cancellation:
        return {}
    return {"cancellation_requested_at": None}


def is_due_for_cancellation(habit, now):
    return habit.pending_cancellation and now - habit.cancellation_requested_at >= COOLING_OFF


def process_pending_cancellations(habits, now):
    """Return ``habits`` with every elapsed request turned into a cancellation."""
    swept = []
    for habit in habits:
        if is_due_for_cancellation(habit, now):
            logger.info(f"Habit {habit.id} cancelled after cooling-off period")
            habit = habit.apply({"is_active": False, "cancellation_requested_at": None})
        swept.append(habit)
    return swept


def days_remaining(habit, now):
    if not habit.pending_cancellation:
        return None
    left = habit.cancellation_requested_at + COOLING_OFF - now
    return max(0, math.ceil(left / timedelta(days=1)))
