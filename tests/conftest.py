import os

# Must be set before the app module reads its config
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date, datetime, timedelta, timezone

import pytest

from pledge_tracker import app as flask_app, db
from pledge_tracker.controller import HabitController
from pledge_tracker.entities import DayRecord, DayStatus, Daily, Habit
from pledge_tracker.storage import HabitStorage, KeyValueStore


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class Ids:
    def __init__(self, prefix="id"):
        self.prefix = prefix
        self.count = 0

    def __call__(self):
        self.count += 1
        return f"{self.prefix}-{self.count}"


def at(day, hour=12):
    day = date.fromisoformat(day) if isinstance(day, str) else day
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


def build_habit(recurrence=None, created="2024-01-01", completed=(), missed=(), pending=(), **fields):
    days = {}
    for status, values in ((DayStatus.PENDING_REASON, pending), (DayStatus.MISSED, missed),
                           (DayStatus.COMPLETED, completed)):
        for value in values:
            days[date.fromisoformat(value)] = DayRecord(status)
    fields.setdefault("id", "habit-1")
    fields.setdefault("title", "Morning run")
    return Habit(recurrence=recurrence or Daily(), created_at=at(created, hour=8), days=days, **fields)


@pytest.fixture()
def make_habit():
    return build_habit


@pytest.fixture()
def app():
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def clock():
    # Monday
    return FakeClock(at("2024-01-08"))


@pytest.fixture()
def ids():
    return Ids("pay")


@pytest.fixture()
def storage(app):
    return HabitStorage(KeyValueStore(db.session, namespace="test"))


@pytest.fixture()
def controller(storage, clock, ids):
    controller = HabitController(
        storage,
        clock=clock,
        id_factory=ids,
        owner={"id": "1", "name": "sam", "email": "sam@example.com", "joined_at": at("2024-01-01")},
    )
    controller.load()
    return controller


@pytest.fixture()
def auth_headers(client):
    response = client.post("/api/register", json={
        "username": "sam", "email": "sam@example.com", "password": "hunter22"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.get_json()['token']}"}
