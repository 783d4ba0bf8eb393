"""
Shared fixtures: an in-memory Mongo (mongomock), a fake Redis and factories
for users, rooms and sessions.
"""
from datetime import timedelta

import fakeredis
import mongomock
import pytest
from fastapi.testclient import TestClient
from mongoengine import connect, disconnect
from mongoengine.connection import get_connection

from virtual_room.connections.redis import init_redis, close_redis
from virtual_room.models import (
    AccessType,
    Assignment,
    Group,
    Simulation,
    User,
)
from virtual_room.services.auth import create_tokens
from virtual_room.services.lifecycle import get_or_create_session
from virtual_room.services.lookup import load_session
from virtual_room.utils.base import Role, utcnow


# Password hashing is irrelevant here and bcrypt is slow
FAKE_HASH = "not-a-real-hash"


@pytest.fixture(autouse=True)
def mongo():
    """Fresh in-memory database per test"""
    connect(
        "virtual_room_test",
        host="mongodb://localhost",
        alias="default",
        mongo_client_class=mongomock.MongoClient,
        tz_aware=True,
    )
    yield
    get_connection(alias="default").drop_database("virtual_room_test")
    disconnect(alias="default")


@pytest.fixture(autouse=True)
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    init_redis(client)
    yield client
    client.flushall()
    close_redis()


@pytest.fixture(autouse=True)
def scheduled(monkeypatch):
    """Capture expiry scheduling instead of talking to rq-scheduler"""
    calls = []

    def _fake_schedule_at(run_at, func, *args, job_id=None, **kwargs):
        calls.append({"run_at": run_at, "func": func, "args": args, "job_id": job_id})

    monkeypatch.setattr("virtual_room.services.lifecycle.schedule_at", _fake_schedule_at)
    return calls


@pytest.fixture
def now():
    # Mongo keeps milliseconds; whole seconds keep equality checks exact
    return utcnow().replace(microsecond=0)


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make(role=Role.STUDENT, name=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value.lower()}{n}@example.com",
            password=FAKE_HASH,
            role=role.value,
        )
        user.save()
        return user

    return _make


@pytest.fixture
def staff(make_user):
    return make_user(Role.ADMIN, name="Ada Admin")


@pytest.fixture
def make_room(make_user, now):
    """Build a ROOM simulation assigned to a group of `size` students"""

    def _make(size=3, total_questions=20, duration_minutes=60, access_type=AccessType.ROOM, end_date=None):
        students = [make_user(Role.STUDENT) for _ in range(size)]
        group = Group(name="Class A", members=students)
        group.save()
        simulation = Simulation(
            title="Mock test",
            duration_minutes=duration_minutes,
            total_questions=total_questions,
            access_type=access_type.value,
            start_date=now - timedelta(days=1),
            end_date=end_date or now + timedelta(days=7),
        )
        simulation.save()
        assignment = Assignment(simulation=simulation, group=group)
        assignment.save()
        return assignment, students

    return _make


@pytest.fixture
def open_room(make_room, staff):
    """A WAITING session for a three-student group; returns (session, assignment, students)"""

    def _open(size=3, **kwargs):
        assignment, students = make_room(size=size, **kwargs)
        state = get_or_create_session(str(assignment.id), staff)
        return load_session(state["session"]["id"]), assignment, students

    return _open


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_tokens(user).access_token}"}

    return _headers
