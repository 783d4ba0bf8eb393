"""Populate a local database with a ready-to-open virtual room.

    python -m virtual_room.seed
"""
from __future__ import annotations

from datetime import timedelta

from virtual_room.connections.mongo import init_mongo, close_mongo
from virtual_room.models import (
    AccessType,
    Assignment,
    CheatingEvent,
    Group,
    Participant,
    Session,
    SessionMessage,
    Simulation,
    User,
)
from virtual_room.services.auth import hash_password
from virtual_room.utils.base import Role, utcnow

DEFAULT_PASSWORD = "Secret123!"


def _ensure_users() -> tuple[User, list[User]]:
    staff = User.objects(email="admin@example.com").first()
    if not staff:
        staff = User(
            name="Ada Admin",
            email="admin@example.com",
            password=hash_password(DEFAULT_PASSWORD),
            role=Role.ADMIN.value,
        )
        staff.save()

    students: list[User] = []
    fixtures = [
        ("Alice Example", "alice@example.com"),
        ("Bob Example", "bob@example.com"),
        ("Carol Example", "carol@example.com"),
    ]
    for name, email in fixtures:
        user = User.objects(email=email).first()
        if not user:
            user = User(name=name, email=email, password=hash_password(DEFAULT_PASSWORD))
            user.save()
        students.append(user)
    return staff, students


def _ensure_assignment(students: list[User]) -> Assignment:
    group = Group.objects(name="Morning class").first()
    if not group:
        group = Group(name="Morning class", members=students)
        group.save()

    simulation = Simulation.objects(title="Mock admission test").first()
    if not simulation:
        now = utcnow()
        simulation = Simulation(
            title="Mock admission test",
            duration_minutes=60,
            total_questions=20,
            access_type=AccessType.ROOM.value,
            start_date=now,
            end_date=now + timedelta(days=7),
        )
        simulation.save()

    assignment = Assignment.objects(simulation=simulation, group=group).first()
    if not assignment:
        assignment = Assignment(simulation=simulation, group=group)
        assignment.save()
    return assignment


def seed() -> None:
    init_mongo()
    try:
        # Children first so no reference is left dangling
        SessionMessage.drop_collection()
        CheatingEvent.drop_collection()
        Participant.drop_collection()
        Session.drop_collection()
        Assignment.drop_collection()
        Simulation.drop_collection()
        Group.drop_collection()
        User.drop_collection()

        _, students = _ensure_users()
        assignment = _ensure_assignment(students)
        print(f"Seed completed. Assignment id: {assignment.id}")
    finally:
        close_mongo()


if __name__ == "__main__":
    seed()
