import logging
from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from .entities import Habit, Payment, Profile
from .errors import PersistenceError, StaleWriteError
from .models import StoreRecord

logger = logging.getLogger(__name__)

HABITS = "habits"
PAYMENTS = "payments"
USER = "user"
COLLECTIONS = (HABITS, PAYMENTS, USER)


class KeyValueStore:
    """Whole-collection reads and writes.

    Each collection carries a version. A ``put`` given the version its records
    were read at refuses to overwrite a newer one and raises ``StaleWriteError``.
    """

    def __init__(self, session, namespace="default"):
        self.session = session
        self.namespace = str(namespace)
        self._depth = 0

    def _row(self, collection):
        return self.session.query(StoreRecord).filter_by(
            namespace=self.namespace, collection=collection).one_or_none()

    def get(self, collection):
        return self.get_versioned(collection)[0]

    def get_versioned(self, collection):
        try:
            row = self._row(collection)
        except SQLAlchemyError as e:
            logger.error(f"Database error reading {collection}: {str(e)}")
            self.session.rollback()
            raise PersistenceError(f"Failed to read {collection}") from e
        if row is None:
            return [], 0
        return list(row.records), row.version

    def put(self, collection, records, expected_version=None):
        """Replace ``collection`` and return its new version (a missing one is 0)."""
        with self.batch():
            row = self._row(collection)
            current = row.version if row is not None else 0
            if expected_version is not None and current != expected_version:
                logger.warning(f"Stale write to {collection}: read version {expected_version}, stored {current}")
                raise StaleWriteError(f"{collection} changed since it was read")
            if row is None:
                row = StoreRecord(namespace=self.namespace, collection=collection, records=list(records))
                self.session.add(row)
            else:
                row.records = list(records)
            self.session.flush()
            return row.version

    def remove(self, collection):
        with self.batch():
            self.session.query(StoreRecord).filter_by(
                namespace=self.namespace, collection=collection).delete()

    def clear(self, collections):
        with self.batch():
            for collection in collections:
                self.remove(collection)

    @contextmanager
    def batch(self):
        # Writes inside the outermost batch commit together or not at all
        self._depth += 1
        try:
            yield self
            if self._depth == 1:
                self.session.commit()
        except SQLAlchemyError as e:
            if self._depth == 1:
                logger.error(f"Database error, rolling back: {str(e)}")
                self.session.rollback()
                if isinstance(e, StaleDataError):
                    raise StaleWriteError("Store changed during the write") from e
                raise PersistenceError("Failed to write to the store") from e
            raise
        except Exception:
            if self._depth == 1:
                self.session.rollback()
            raise
        finally:
            self._depth -= 1


class HabitStorage:
    def __init__(self, store):
        self.store = store

    def load_habits(self):
        return self.load_habits_versioned()[0]

    def load_habits_versioned(self):
        records, version = self.store.get_versioned(HABITS)
        return [Habit.from_record(r) for r in records], version

    def save_habits(self, habits, expected_version=None):
        return self.store.put(HABITS, [h.to_record() for h in habits], expected_version=expected_version)

    def load_payments(self):
        return [Payment.from_record(r) for r in self.store.get(PAYMENTS)]

    def add_payment(self, payment):
        # Append-only log
        with self.store.batch():
            records = self.store.get(PAYMENTS)
            records.append(payment.to_record())
            self.store.put(PAYMENTS, records)

    def load_user(self):
        records = self.store.get(USER)
        return Profile.from_record(records[0]) if records else None

    def save_user(self, profile):
        self.store.put(USER, [profile.to_record()])

    def clear_all(self):
        self.store.clear(COLLECTIONS)
        logger.info(f"Cleared all collections for namespace {self.store.namespace}")

    def transaction(self):
        return self.store.batch()
