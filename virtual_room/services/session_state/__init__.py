from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Iterable

from virtual_room.models import (
    Assignment,
    CheatingEvent,
    Participant,
    SenderType,
    Session,
    SessionMessage,
    SessionStatus,
    Simulation,
    User,
)
from virtual_room.services.lookup import load_session
from virtual_room.utils.base import as_utc, isoformat, utcnow
from virtual_room.utils.config import settings

PARTICIPANT_MESSAGES_LIMIT = 20


def invited_students(assignment: Assignment) -> list[User]:
    """Roster of an assignment: its direct student plus every group member, de-duplicated."""
    roster: list[User] = []
    seen: set[str] = set()
    candidates: list[User] = []
    if assignment.student:
        candidates.append(assignment.student)
    if assignment.group:
        candidates.extend(assignment.group.members or [])
    for student in candidates:
        # Dangling references come back as DBRef; skip them
        if not isinstance(student, User):
            continue
        key = str(student.id)
        if key in seen:
            continue
        seen.add(key)
        roster.append(student)
    return roster


def invited_student_view(student: User) -> dict[str, Any]:
    return {"id": str(student.id), "name": student.name, "email": student.email}


def is_really_connected(participant: Participant, now: datetime | None = None) -> bool:
    """A participant counts as connected only while its heartbeat is fresh."""
    if not participant.is_connected or participant.last_heartbeat is None:
        return False
    now = now or utcnow()
    age = now - as_utc(participant.last_heartbeat)
    return age < timedelta(seconds=settings.heartbeat_timeout_seconds)


def session_deadline(session: Session, simulation: Simulation | None = None) -> datetime | None:
    if session.actual_start_at is None:
        return None
    simulation = simulation or session.simulation
    return as_utc(session.actual_start_at) + timedelta(minutes=simulation.duration_minutes)


def time_remaining(session: Session, simulation: Simulation | None = None, now: datetime | None = None) -> int | None:
    """Whole seconds left in a started session, never negative; None otherwise."""
    if session.status != SessionStatus.STARTED.value or session.actual_start_at is None:
        return None
    now = now or utcnow()
    deadline = session_deadline(session, simulation)
    return max(0, math.floor((deadline - now).total_seconds()))


def progress_percent(answered_count: int, total_questions: int) -> int:
    if total_questions <= 0:
        return 0
    # Half-up rounding; round() would round 12.5 down to 12
    return int(math.floor(answered_count / total_questions * 100 + 0.5))


def session_view(session: Session) -> dict[str, Any]:
    return {
        "id": str(session.id),
        "status": session.status,
        "assignment_id": str(session.assignment.id),
        "scheduled_start_at": isoformat(session.scheduled_start_at),
        "actual_start_at": isoformat(session.actual_start_at),
        "ended_at": isoformat(session.ended_at),
        "waiting_message": session.waiting_message,
    }


def simulation_view(simulation: Simulation) -> dict[str, Any]:
    return {
        "id": str(simulation.id),
        "title": simulation.title,
        "duration_minutes": simulation.duration_minutes,
        "total_questions": simulation.total_questions,
    }


def message_view(message: SessionMessage) -> dict[str, Any]:
    return {
        "id": str(message.id),
        "participant_id": str(message.participant.id),
        "sender_type": message.sender_type,
        "sender_id": str(message.sender.id),
        "message": message.message,
        "is_read": message.is_read,
        "read_at": isoformat(message.read_at),
        "created_at": isoformat(message.created_at),
    }


def result_view(participant: Participant) -> dict[str, Any] | None:
    result = participant.result
    if result is None:
        return None
    return {
        "total_score": result.total_score,
        "correct_answers": result.correct_answers,
        "wrong_answers": result.wrong_answers,
        "blank_answers": result.blank_answers,
    }


def participant_view(
    participant: Participant,
    total_questions: int,
    now: datetime,
    cheating_events: list[CheatingEvent] | None = None,
    unread_from_student: int = 0,
    unread_for_student: int = 0,
) -> dict[str, Any]:
    cheating_events = cheating_events or []
    recent = cheating_events[: settings.recent_cheating_events_limit]
    return {
        "id": str(participant.id),
        "student_id": str(participant.student.id),
        "student_name": participant.student.name,
        "is_connected": is_really_connected(participant, now),
        "is_ready": participant.ready_at is not None,
        "ready_at": isoformat(participant.ready_at),
        "last_heartbeat": isoformat(participant.last_heartbeat),
        "joined_at": isoformat(participant.joined_at),
        "has_started": participant.started_at is not None,
        "started_at": isoformat(participant.started_at),
        "is_completed": participant.completed_at is not None,
        "completed_at": isoformat(participant.completed_at),
        "current_question_index": participant.current_question_index,
        "answered_count": participant.answered_count,
        "progress_percent": progress_percent(participant.answered_count, total_questions),
        "cheating_events_count": len(cheating_events),
        "recent_cheating_events": [
            {"id": str(e.id), "event_type": e.event_type, "created_at": isoformat(e.created_at)}
            for e in recent
        ],
        "unread_messages_count": unread_from_student,
        "has_unread_messages": unread_for_student > 0,
        "is_kicked": participant.is_kicked,
        "kicked_reason": participant.kicked_reason,
        "kicked_at": isoformat(participant.kicked_at),
        "result": result_view(participant),
    }


def count_connected(participants: Iterable[Participant], roster_ids: set[str], now: datetime) -> int:
    """Connected participants that belong to the roster; never exceeds len(roster_ids)."""
    return sum(
        1 for p in participants
        if is_really_connected(p, now) and str(p.student.id) in roster_ids
    )


def _events_by_participant(participants: list[Participant]) -> dict[str, list[CheatingEvent]]:
    grouped: dict[str, list[CheatingEvent]] = defaultdict(list)
    if not participants:
        return grouped
    events = CheatingEvent.objects(participant__in=participants).order_by("-created_at").no_dereference()
    for event in events:
        grouped[str(event.participant.id)].append(event)
    return grouped


def _unread_by_participant(participants: list[Participant]) -> tuple[dict[str, int], dict[str, int]]:
    from_student: dict[str, int] = defaultdict(int)
    for_student: dict[str, int] = defaultdict(int)
    if not participants:
        return from_student, for_student
    unread = SessionMessage.objects(participant__in=participants, is_read=False).no_dereference()
    for message in unread:
        key = str(message.participant.id)
        if message.sender_type == SenderType.STUDENT.value:
            from_student[key] += 1
        else:
            for_student[key] += 1
    return from_student, for_student


def build_session_state(
    session: Session,
    now: datetime | None = None,
    participant_id_for_messages: str | None = None,
) -> dict[str, Any]:
    """Full snapshot of a session, recomputed from storage on every call.

    Aggregates are derived by filtering the participant list; nothing is
    cached between calls, so every poll sees a self-consistent view.
    """
    now = now or utcnow()
    simulation: Simulation = session.simulation
    roster = invited_students(session.assignment)
    roster_ids = {str(s.id) for s in roster}

    participants = list(Participant.objects(session=session).order_by("joined_at"))
    events = _events_by_participant(participants)
    unread_from_student, unread_for_student = _unread_by_participant(participants)

    participant_views = [
        participant_view(
            p,
            simulation.total_questions,
            now,
            cheating_events=events.get(str(p.id)),
            unread_from_student=unread_from_student.get(str(p.id), 0),
            unread_for_student=unread_for_student.get(str(p.id), 0),
        )
        for p in participants
    ]
    participant_student_ids = {view["student_id"] for view in participant_views}

    state: dict[str, Any] = {
        "session": session_view(session),
        "simulation": simulation_view(simulation),
        "participants": participant_views,
        "invited_students": [invited_student_view(s) for s in roster],
        "not_connected_students": [
            invited_student_view(s) for s in roster if str(s.id) not in participant_student_ids
        ],
        "connected_count": count_connected(participants, roster_ids, now),
        "ready_count": sum(
            1 for v in participant_views
            if v["is_connected"] and v["is_ready"] and v["student_id"] in roster_ids
        ),
        "completed_count": sum(1 for v in participant_views if v["is_completed"]),
        "total_invited": len(roster),
        "time_remaining": time_remaining(session, simulation, now),
        "poll_interval_seconds": settings.poll_interval_seconds,
    }

    if participant_id_for_messages:
        target = next((p for p in participants if str(p.id) == participant_id_for_messages), None)
        if target is not None:
            recent = SessionMessage.objects(participant=target).order_by("-created_at").limit(PARTICIPANT_MESSAGES_LIMIT)
            state["messages"] = [message_view(m) for m in reversed(list(recent))]
    return state


def get_session_state(session_id: str, participant_id_for_messages: str | None = None) -> dict[str, Any]:
    return build_session_state(load_session(session_id), participant_id_for_messages=participant_id_for_messages)
