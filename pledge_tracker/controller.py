"""The habit aggregate: loads habits, applies the pure rules, persists results.

The controller is the only component that talks to storage. Each mutating
call builds a new habit list, writes it, and only then swaps it in, so a
failed write leaves the previous state intact and the call can be retried.
Calls on one controller must not interleave. Writes carry the version the
habits were loaded at, so a controller holding a stale copy gets
``StaleWriteError`` instead of overwriting a newer list; reload and retry.
"""

import logging
import uuid
from dataclasses import replace
from decimal import Decimal

from . import cancellation, ledger
from .dates import parse_date, utcnow
from .entities import Habit, PaymentStatus, Profile, to_money, validate_recurrence
from .errors import ValidationError
from .sample_data import build_sample_habits
from .schedule import habits_due_on, is_due
from .slips import find_pending_reasons

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "pledge_amount", "recurrence")


def generate_id():
    return uuid.uuid4().hex


def _clean_title(title):
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title required")
    return title


def _clean_pledge(amount):
    amount = to_money(amount)
    if amount < 0:
        raise ValidationError("Pledge amount must not be negative")
    return amount


class HabitController:
    def __init__(self, storage, clock=utcnow, id_factory=generate_id, owner=None, seed_demo_data=False):
        self.storage = storage
        self.clock = clock
        self.new_id = id_factory
        # Profile fields used when no profile has been stored yet
        self.owner = owner
        self.seed_demo_data = seed_demo_data
        self.habits = []
        self.profile = None
        self.version = 0
        # Stored version of the habit collection this state was built from
        self.stored_version = 0

    def today(self):
        return self.clock().date()

    # Loading and persisting

    def load(self):
        habits, stored_version = self.storage.load_habits_versioned()
        seeded = False
        if not habits and self.seed_demo_data:
            habits = build_sample_habits(self.new_id, self.clock())
            seeded = True
            logger.info(f"Seeded {len(habits)} demonstration habits")
        stored = self.storage.load_user()
        profile = stored
        if profile is None and self.owner is not None:
            profile = Profile(**self.owner)
        if profile is not None:
            charged = sum((p.amount for p in self.storage.load_payments()
                           if p.status == PaymentStatus.COMPLETED), Decimal("0"))
            profile = replace(profile, total_charged=charged)
        swept = cancellation.process_pending_cancellations(habits, self.clock())
        if seeded or swept != habits or self._aggregates(swept, profile) != stored:
            self._commit(habits, profile=profile, base_version=stored_version)
        else:
            self.habits = habits
            self.profile = profile
            self.stored_version = stored_version
            self.version += 1
        logger.debug(f"Loaded {len(self.habits)} habits (version {self.version})")
        return self.habits

    def _aggregates(self, habits, profile):
        if profile is None:
            return None
        return replace(
            profile,
            active_habits=sum(1 for h in habits if h.is_active),
            total_pledged=sum((h.total_pledged for h in habits), Decimal("0")),
        )

    def _commit(self, habits, payment=None, profile=None, base_version=None):
        habits = cancellation.process_pending_cancellations(habits, self.clock())
        profile = self._aggregates(habits, profile or self.profile)
        if base_version is None:
            base_version = self.stored_version
        # Payment, habits and profile land together or not at all
        with self.storage.transaction():
            stored_version = self.storage.save_habits(habits, expected_version=base_version)
            if payment is not None:
                self.storage.add_payment(payment)
            if profile is not None:
                self.storage.save_user(profile)
        self.habits = habits
        self.profile = profile
        self.stored_version = stored_version
        self.version += 1

    def _mutate(self, habit_id, operation):
        habit = self.get_habit(habit_id)
        if habit is None:
            logger.debug(f"Habit {habit_id} not found, ignoring")
            return None
        result = operation(habit)
        if isinstance(result, dict):
            result = ledger.LedgerResult(result)
        habits = [h.apply(result.changes) if h.id == habit_id else h for h in self.habits]
        if result.changed or cancellation.process_pending_cancellations(habits, self.clock()) != habits:
            self._commit(habits, payment=result.payment)
        if result.payment is not None:
            logger.info(f"Payment {result.payment.id} of {result.payment.amount} recorded for habit {habit_id}")
        return self.get_habit(habit_id)

    # Queries

    def get_habit(self, habit_id):
        return next((h for h in self.habits if h.id == habit_id), None)

    def is_due(self, habit_id, day=None):
        habit = self.get_habit(habit_id)
        return habit is not None and is_due(habit, parse_date(day) if day else self.today())

    def get_active_habits(self):
        return [h for h in self.habits if h.is_active]

    def get_habits_due_on(self, day=None):
        return habits_due_on(self.habits, parse_date(day) if day else self.today())

    def get_pending_reasons(self):
        return find_pending_reasons(self.habits, self.today())

    def get_total_pledged(self):
        return sum((h.total_pledged for h in self.habits), Decimal("0"))

    def days_until_cancellation(self, habit_id):
        habit = self.get_habit(habit_id)
        if habit is None:
            return None
        return cancellation.days_remaining(habit, self.clock())

    def get_payments(self):
        return self.storage.load_payments()

    # Habit management

    def add_habit(self, title, recurrence, pledge_amount=0, description=""):
        habit = Habit(
            id=self.new_id(),
            title=_clean_title(title),
            description=(description or "").strip(),
            recurrence=validate_recurrence(recurrence),
            pledge_amount=_clean_pledge(pledge_amount),
            created_at=self.clock(),
        )
        self._commit(self.habits + [habit])
        logger.info(f"Habit created: {habit.title} ({habit.id})")
        return habit

    def update_habit(self, habit_id, **fields):
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit: {', '.join(sorted(unknown))}")
        changes = {}
        if "title" in fields:
            changes["title"] = _clean_title(fields["title"])
        if "description" in fields:
            changes["description"] = (fields["description"] or "").strip()
        if "pledge_amount" in fields:
            changes["pledge_amount"] = _clean_pledge(fields["pledge_amount"])
        if "recurrence" in fields:
            changes["recurrence"] = validate_recurrence(fields["recurrence"])
        return self._mutate(habit_id, lambda habit: changes)

    def delete_habit(self, habit_id):
        if self.get_habit(habit_id) is None:
            return False
        # Payments stay in the ledger
        self._commit([h for h in self.habits if h.id != habit_id])
        logger.info(f"Habit {habit_id} deleted")
        return True

    def deactivate(self, habit_id):
        return self._mutate(habit_id, lambda habit: {"is_active": False, "cancellation_requested_at": None}
                            if habit.is_active else {})

    def reset(self):
        self.storage.clear_all()
        self.habits = []
        self.profile = None
        self.stored_version = 0
        self.version += 1

    # Ledger

    def complete(self, habit_id):
        now = self.clock()
        return self._mutate(habit_id, lambda habit: ledger.complete(habit, now.date(), now))

    def mark_missed(self, habit_id, reason=None, custom_reason=None):
        now = self.clock()
        miss_reason = ledger.build_reason(reason, now, custom_reason) if reason is not None else None
        return self._mutate(habit_id, lambda habit: ledger.mark_missed(
            habit, now.date(), now, self.new_id, miss_reason))

    def provide_reason(self, habit_id, day, reason, custom_reason=None):
        now = self.clock()
        try:
            day = parse_date(day)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid date: {day!r}")
        if day > now.date():
            raise ValidationError(f"{day} is in the future")
        miss_reason = ledger.build_reason(reason, now, custom_reason)
        return self._mutate(habit_id, lambda habit: ledger.provide_reason(
            habit, day, miss_reason, now, self.new_id))

    # Cancellation

    def request_cancellation(self, habit_id):
        now = self.clock()
        habit = self._mutate(habit_id, lambda habit: cancellation.request_cancellation(habit, now))
        if habit is not None and habit.pending_cancellation:
            logger.info(f"Cancellation requested for habit {habit_id}")
        return habit

    def cancel_cancellation_request(self, habit_id):
        return self._mutate(habit_id, cancellation.cancel_cancellation_request)
