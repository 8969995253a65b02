"""Habit, payment and profile values, plus their storage records.

All values are frozen. Mutations build a new value with ``dataclasses.replace``.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union
from datetime import date, datetime

from .dates import date_string, parse_date, parse_timestamp, timestamp_string
from .errors import ValidationError


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class DayStatus(str, Enum):
    COMPLETED = "completed"
    MISSED = "missed"
    PENDING_REASON = "pending_reason"


class MissCategory(str, Enum):
    STRESSED = "stressed"
    DISTRACTED = "distracted"
    NO_TIME = "no_time"
    SICK = "sick"
    EMERGENCY = "emergency"
    OTHER = "other"

    @property
    def label(self):
        return _MISS_LABELS[self]


_MISS_LABELS = {
    MissCategory.STRESSED: "Stressed",
    MissCategory.DISTRACTED: "Distracted",
    MissCategory.NO_TIME: "No Time",
    MissCategory.SICK: "Sick",
    MissCategory.EMERGENCY: "Emergency",
    MissCategory.OTHER: "Other",
}


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def to_money(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount


# Recurrence variants. Each carries only the fields its pattern needs.

@dataclass(frozen=True)
class Daily:
    frequency = Frequency.DAILY


@dataclass(frozen=True)
class Weekly:
    frequency = Frequency.WEEKLY


@dataclass(frozen=True)
class Monthly:
    frequency = Frequency.MONTHLY


@dataclass(frozen=True)
class DaysOfWeek:
    days: FrozenSet[int]  # date.weekday(): Monday is 0
    frequency = Frequency.CUSTOM


@dataclass(frozen=True)
class EveryNDays:
    interval: int
    frequency = Frequency.CUSTOM


@dataclass(frozen=True)
class TimesPerWeek:
    times: int
    frequency = Frequency.CUSTOM


@dataclass(frozen=True)
class TimesPerMonth:
    times: int
    frequency = Frequency.CUSTOM


@dataclass(frozen=True)
class TimesInPeriod:
    times: int
    days: int
    frequency = Frequency.CUSTOM


@dataclass(frozen=True)
class Unscheduled:
    """A custom habit whose descriptor is empty. Never due."""
    frequency = Frequency.CUSTOM


Recurrence = Union[Daily, Weekly, Monthly, DaysOfWeek, EveryNDays,
                   TimesPerWeek, TimesPerMonth, TimesInPeriod, Unscheduled]

_SIMPLE = {
    Frequency.DAILY: Daily(),
    Frequency.WEEKLY: Weekly(),
    Frequency.MONTHLY: Monthly(),
}


def validate_recurrence(recurrence):
    if isinstance(recurrence, (Daily, Weekly, Monthly)):
        return recurrence
    if isinstance(recurrence, DaysOfWeek):
        if not recurrence.days:
            raise ValidationError("days_of_week must name at least one weekday")
        if any(not isinstance(d, int) or isinstance(d, bool) or not 0 <= d <= 6 for d in recurrence.days):
            raise ValidationError("days_of_week entries must be weekday numbers 0-6")
        return recurrence
    if isinstance(recurrence, EveryNDays):
        counts = [recurrence.interval]
    elif isinstance(recurrence, (TimesPerWeek, TimesPerMonth)):
        counts = [recurrence.times]
    elif isinstance(recurrence, TimesInPeriod):
        counts = [recurrence.times, recurrence.days]
    else:
        raise ValidationError("custom frequency needs a recurrence descriptor")
    if any(not isinstance(n, int) or isinstance(n, bool) or n < 1 for n in counts):
        raise ValidationError("recurrence counts must be positive integers")
    return recurrence


def recurrence_from_record(frequency, descriptor=None):
    """Build a recurrence from the flat ``frequency`` + ``custom_frequency`` shape.

    When a descriptor has several fields set, the first present one wins, in
    the order interval, times_per_week, times_per_month, times_in_period,
    days_of_week. An empty descriptor yields ``Unscheduled``.
    """
    try:
        frequency = Frequency(frequency)
    except ValueError:
        raise ValidationError(f"Unknown frequency: {frequency!r}")
    if frequency in _SIMPLE:
        return _SIMPLE[frequency]
    descriptor = descriptor or {}
    if descriptor.get("interval"):
        return EveryNDays(int(descriptor["interval"]))
    if descriptor.get("times_per_week"):
        return TimesPerWeek(int(descriptor["times_per_week"]))
    if descriptor.get("times_per_month"):
        return TimesPerMonth(int(descriptor["times_per_month"]))
    period = descriptor.get("times_in_period")
    if period and period.get("times") and period.get("days"):
        return TimesInPeriod(int(period["times"]), int(period["days"]))
    if descriptor.get("days_of_week"):
        return DaysOfWeek(frozenset(int(d) for d in descriptor["days_of_week"]))
    return Unscheduled()


def recurrence_to_record(recurrence):
    if isinstance(recurrence, DaysOfWeek):
        return {"days_of_week": sorted(recurrence.days)}
    if isinstance(recurrence, EveryNDays):
        return {"interval": recurrence.interval}
    if isinstance(recurrence, TimesPerWeek):
        return {"times_per_week": recurrence.times}
    if isinstance(recurrence, TimesPerMonth):
        return {"times_per_month": recurrence.times}
    if isinstance(recurrence, TimesInPeriod):
        return {"times_in_period": {"times": recurrence.times, "days": recurrence.days}}
    if isinstance(recurrence, Unscheduled):
        return {}
    return None


@dataclass(frozen=True)
class MissReason:
    category: MissCategory
    recorded_at: datetime
    custom_reason: Optional[str] = None

    def to_record(self):
        return {
            "reason": self.category.value,
            "custom_reason": self.custom_reason,
            "timestamp": timestamp_string(self.recorded_at),
        }

    @classmethod
    def from_record(cls, record):
        return cls(
            category=MissCategory(record["reason"]),
            recorded_at=parse_timestamp(record["timestamp"]),
            custom_reason=record.get("custom_reason"),
        )


@dataclass(frozen=True)
class DayRecord:
    status: DayStatus
    # Only set on finalized misses. A missed day without a reason had it waived.
    reason: Optional[MissReason] = None


@dataclass(frozen=True)
class Habit:
    id: str
    title: str
    recurrence: Recurrence
    created_at: datetime
    description: str = ""
    pledge_amount: Decimal = Decimal("0")
    total_pledged: Decimal = Decimal("0")
    is_active: bool = True
    streak: int = 0
    last_completed: Optional[datetime] = None
    cancellation_requested_at: Optional[datetime] = None
    days: Dict[date, DayRecord] = field(default_factory=dict)

    @property
    def frequency(self):
        return self.recurrence.frequency

    @property
    def created_on(self):
        return self.created_at.date()

    @property
    def pending_cancellation(self):
        return self.cancellation_requested_at is not None

    def status_on(self, day):
        record = self.days.get(day)
        return record.status if record is not None else None

    def _dates_with(self, status):
        return sorted(d for d, r in self.days.items() if r.status == status)

    @property
    def completed_dates(self):
        return self._dates_with(DayStatus.COMPLETED)

    @property
    def missed_dates(self):
        return self._dates_with(DayStatus.MISSED)

    @property
    def pending_reason_dates(self):
        return self._dates_with(DayStatus.PENDING_REASON)

    @property
    def miss_reasons(self):
        return {d: r.reason for d, r in sorted(self.days.items()) if r.reason is not None}

    def apply(self, changes):
        return replace(self, **changes) if changes else self

    def to_record(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "frequency": self.frequency.value,
            "custom_frequency": recurrence_to_record(self.recurrence),
            "pledge_amount": str(self.pledge_amount),
            "total_pledged": str(self.total_pledged),
            "is_active": self.is_active,
            "created_at": timestamp_string(self.created_at),
            "last_completed": timestamp_string(self.last_completed),
            "streak": self.streak,
            "completed_dates": [date_string(d) for d in self.completed_dates],
            "missed_dates": [date_string(d) for d in self.missed_dates],
            "pending_reason_dates": [date_string(d) for d in self.pending_reason_dates],
            "miss_reasons": {date_string(d): r.to_record() for d, r in self.miss_reasons.items()},
            "pending_cancellation": self.pending_cancellation,
            "cancellation_requested_at": timestamp_string(self.cancellation_requested_at),
        }

    @classmethod
    def from_record(cls, record):
        reasons = {parse_date(d): MissReason.from_record(r)
                   for d, r in (record.get("miss_reasons") or {}).items()}
        days = {}
        # Completed beats missed beats pending when the lists overlap
        for key, status in (("pending_reason_dates", DayStatus.PENDING_REASON),
                            ("missed_dates", DayStatus.MISSED),
                            ("completed_dates", DayStatus.COMPLETED)):
            for value in record.get(key) or []:
                day = parse_date(value)
                days[day] = DayRecord(status, reasons.get(day) if status == DayStatus.MISSED else None)
        requested_at = None
        if record.get("pending_cancellation"):
            requested_at = parse_timestamp(record.get("cancellation_requested_at"))
        return cls(
            id=record["id"],
            title=record["title"],
            description=record.get("description") or "",
            recurrence=recurrence_from_record(record["frequency"], record.get("custom_frequency")),
            pledge_amount=to_money(record.get("pledge_amount", 0)),
            total_pledged=to_money(record.get("total_pledged", 0)),
            is_active=bool(record.get("is_active", True)),
            created_at=parse_timestamp(record["created_at"]),
            last_completed=parse_timestamp(record.get("last_completed")),
            streak=int(record.get("streak", 0)),
            cancellation_requested_at=requested_at,
            days=days,
        )


@dataclass(frozen=True)
class Payment:
    id: str
    habit_id: str
    amount: Decimal
    date: datetime
    reason: str
    missed_date: Optional[date] = None
    miss_reason: Optional[MissReason] = None
    status: PaymentStatus = PaymentStatus.PENDING

    def to_record(self):
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "amount": str(self.amount),
            "date": timestamp_string(self.date),
            "reason": self.reason,
            "missed_date": date_string(self.missed_date) if self.missed_date else None,
            "miss_reason": self.miss_reason.to_record() if self.miss_reason else None,
            "status": self.status.value,
        }

    @classmethod
    def from_record(cls, record):
        return cls(
            id=record["id"],
            habit_id=record["habit_id"],
            amount=to_money(record["amount"]),
            date=parse_timestamp(record["date"]),
            reason=record.get("reason") or "",
            missed_date=parse_date(record["missed_date"]) if record.get("missed_date") else None,
            miss_reason=MissReason.from_record(record["miss_reason"]) if record.get("miss_reason") else None,
            status=PaymentStatus(record.get("status", PaymentStatus.PENDING.value)),
        )


@dataclass(frozen=True)
class PendingReason:
    habit_id: str
    date: date
    habit_title: str

    def to_record(self):
        return {"habit_id": self.habit_id, "date": date_string(self.date), "habit_title": self.habit_title}


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    email: str
    joined_at: datetime
    total_pledged: Decimal = Decimal("0")
    total_charged: Decimal = Decimal("0")
    active_habits: int = 0

    def to_record(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "total_pledged": str(self.total_pledged),
            "total_charged": str(self.total_charged),
            "active_habits": self.active_habits,
            "joined_at": timestamp_string(self.joined_at),
        }

    @classmethod
    def from_record(cls, record):
        return cls(
            id=record["id"],
            name=record.get("name") or "",
            email=record.get("email") or "",
            joined_at=parse_timestamp(record["joined_at"]),
            total_pledged=to_money(record.get("total_pledged", 0)),
            total_charged=to_money(record.get("total_charged", 0)),
            active_habits=int(record.get("active_habits", 0)),
        )
