"""Completions, misses and the pledge charges they cause.

Every operation is pure: it takes a habit and returns a ``LedgerResult``
holding the field changes to merge and, for a finalized miss, the payment
to append. An empty result means the call was a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .entities import DayRecord, DayStatus, MissCategory, MissReason, Payment, PaymentStatus
from .errors import ValidationError
from .streak import calculate_streak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerResult:
    changes: dict = field(default_factory=dict)
    payment: Optional[Payment] = None

    @property
    def changed(self):
        return bool(self.changes)


NO_CHANGE = LedgerResult()


def build_reason(category, recorded_at, custom_reason=None):
    if isinstance(category, MissReason):
        return category
    try:
        category = MissCategory(category)
    except ValueError:
        raise ValidationError(f"Unknown miss reason: {category!r}")
    custom_reason = (custom_reason or "").strip() or None
    return MissReason(category=category, recorded_at=recorded_at, custom_reason=custom_reason)


def _with_day(habit, day, record):
    days = dict(habit.days)
    days[day] = record
    return days


def complete(habit, today, now):
    if habit.status_on(today) == DayStatus.COMPLETED:
        return NO_CHANGE
    # A completion replaces any miss recorded for the same day
    days = _with_day(habit, today, DayRecord(DayStatus.COMPLETED))
    completed = [d for d, r in days.items() if r.status == DayStatus.COMPLETED]
    return LedgerResult({
        "days": days,
        "streak": calculate_streak(completed),
        "last_completed": now,
    })


def _finalize_miss(habit, day, reason, now, payment_id):
    payment = Payment(
        id=payment_id,
        habit_id=habit.id,
        amount=habit.pledge_amount,
        date=now,
        reason=f"Missed habit: {habit.title}",
        missed_date=day,
        miss_reason=reason,
        status=PaymentStatus.PENDING,
    )
    changes = {
        "days": _with_day(habit, day, DayRecord(DayStatus.MISSED, reason)),
        "total_pledged": habit.total_pledged + habit.pledge_amount,
        "streak": 0,
    }
    logger.debug(f"Finalizing miss for habit {habit.id} on {day}: charge {habit.pledge_amount}")
    return LedgerResult(changes, payment)


def mark_missed(habit, today, now, new_id, reason=None):
    """Record a miss for ``today``.

    With a reason the miss is charged at once. Without one the day waits in
    pending-reason and nothing is charged until ``provide_reason``.
    """
    status = habit.status_on(today)
    if status in (DayStatus.COMPLETED, DayStatus.MISSED):
        return NO_CHANGE
    if reason is None:
        if status == DayStatus.PENDING_REASON:
            return NO_CHANGE
        return LedgerResult({"days": _with_day(habit, today, DayRecord(DayStatus.PENDING_REASON))})
    return _finalize_miss(habit, today, reason, now, new_id())


def provide_reason(habit, day, reason, now, new_id):
    if day < habit.created_on:
        raise ValidationError(f"{day} is before habit {habit.id} was created")
    if habit.status_on(day) in (DayStatus.COMPLETED, DayStatus.MISSED):
        # Already settled; a second submission must not charge twice
        return NO_CHANGE
    return _finalize_miss(habit, day, reason, now, new_id())
