"""Participant presence: joining, heartbeats, readiness, completion and removal.

Participant milestones (ready_at, started_at, completed_at) are written once
and never cleared, whatever happens to connectivity afterwards.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from mongoengine import NotUniqueError

from virtual_room.models import (
    OPEN_STATUSES,
    Participant,
    ParticipantResult,
    Session,
    SessionStatus,
    User,
)
from virtual_room.services.lifecycle import ensure_room_assignment, find_open_session
from virtual_room.services.lookup import load_assignment, load_participant
from virtual_room.services.messaging import purge_session_messages, unread_views
from virtual_room.services.session_state import (
    count_connected,
    invited_students,
    is_really_connected,
    result_view,
    time_remaining,
)
from virtual_room.utils.base import ErrorCode, VirtualRoomError, isoformat, utcnow
from virtual_room.utils.config import settings

logger = logging.getLogger(__name__)

KICKED_DEFAULT_REASON = "Removed from the session by staff"


def _simulation_summary(session: Session) -> dict[str, Any]:
    simulation = session.simulation
    return {
        "title": simulation.title,
        "duration_minutes": simulation.duration_minutes,
        "total_questions": simulation.total_questions,
    }


def join_session(assignment_id: str, student: User, now: datetime | None = None) -> dict[str, Any]:
    """Attach a student to the open session of an assignment, or reconnect them.

    Once a session is STARTED only participants that were part of the start
    may come back; everyone else is refused with LATE_JOIN.
    """
    now = now or utcnow()
    assignment = load_assignment(assignment_id)
    ensure_room_assignment(assignment, now, check_expiry=False)

    if str(student.id) not in {str(s.id) for s in invited_students(assignment)}:
        raise VirtualRoomError(ErrorCode.NOT_INVITED, "You are not invited to this assignment")

    session = find_open_session(assignment)
    if not session:
        raise VirtualRoomError(ErrorCode.NO_ACTIVE_SESSION, "No active session for this assignment")

    participant: Participant | None = Participant.objects(session=session, student=student).first()
    if participant and participant.is_kicked:
        raise VirtualRoomError(ErrorCode.KICKED, participant.kicked_reason or KICKED_DEFAULT_REASON)
    if session.status == SessionStatus.STARTED.value and (participant is None or participant.started_at is None):
        raise VirtualRoomError(ErrorCode.LATE_JOIN, "The session has already started without you")

    created = False
    if participant is None:
        participant = Participant(
            session=session,
            student=student,
            is_connected=True,
            last_heartbeat=now,
            joined_at=now,
        )
        try:
            participant.save()
            created = True
            logger.info("Participant joined: session=%s student=%s", session.id, student.id)
        except NotUniqueError:
            # A parallel join won the insert; treat this one as a reconnect
            participant = Participant.objects(session=session, student=student).first()

    if not created:
        participant.is_connected = True
        participant.last_heartbeat = now
        participant.disconnected_at = None
        participant.save()
        logger.info("Participant reconnected: session=%s student=%s", session.id, student.id)

    return {
        "participant_id": str(participant.id),
        "session_id": str(session.id),
        "session_status": session.status,
        "actual_start_at": isoformat(session.actual_start_at),
        "waiting_message": session.waiting_message,
        "is_ready": participant.ready_at is not None,
        "time_remaining": time_remaining(session, now=now),
        "poll_interval_seconds": settings.poll_interval_seconds,
        "simulation": _simulation_summary(session),
    }


def _kicked_payload(participant: Participant) -> dict[str, Any]:
    return {
        "is_kicked": True,
        "kicked_reason": participant.kicked_reason or KICKED_DEFAULT_REASON,
        "session_status": SessionStatus.COMPLETED.value,
        "actual_start_at": None,
        "ended_at": None,
        "unread_messages": [],
        "has_unread_messages": False,
        "is_ready": False,
    }


def heartbeat(
    participant_id: str,
    student: User,
    current_question_index: int | None = None,
    answered_count: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Keep-alive from the student's client, optionally carrying progress.

    Progress only moves while the participant is answering: session STARTED,
    participant started and not yet completed. Once the session is closed a
    heartbeat no longer reconnects anyone.
    """
    now = now or utcnow()
    participant = load_participant(participant_id, student, allow_staff=False)
    if participant.is_kicked:
        logger.debug("Heartbeat from kicked participant %s", participant.id)
        return _kicked_payload(participant)

    session: Session = participant.session
    participant.last_heartbeat = now
    if session.status in OPEN_STATUSES:
        participant.is_connected = True
        participant.disconnected_at = None

    answering = (
        session.status == SessionStatus.STARTED.value
        and participant.started_at is not None
        and participant.completed_at is None
    )
    if answering:
        total_questions = session.simulation.total_questions
        if current_question_index is not None:
            participant.current_question_index = min(max(0, current_question_index), max(0, total_questions - 1))
        if answered_count is not None:
            participant.answered_count = max(participant.answered_count, min(answered_count, total_questions))
    participant.save()

    roster_ids = {str(s.id) for s in invited_students(session.assignment)}
    unread = unread_views(participant)

    logger.debug(
        "Heartbeat: participant=%s question=%s answered=%s",
        participant.id, participant.current_question_index, participant.answered_count,
    )
    return {
        "is_kicked": False,
        "session_status": session.status,
        "actual_start_at": isoformat(session.actual_start_at),
        "ended_at": isoformat(session.ended_at),
        "time_remaining": time_remaining(session, now=now),
        "unread_messages": unread,
        "has_unread_messages": bool(unread),
        "is_ready": participant.ready_at is not None,
        "connected_count": count_connected(Participant.objects(session=session), roster_ids, now),
        "total_participants": len(roster_ids),
    }


def set_ready(participant_id: str, student: User, now: datetime | None = None) -> dict[str, Any]:
    participant = load_participant(participant_id, student, allow_staff=False)
    if participant.ready_at is None:
        participant.ready_at = now or utcnow()
        participant.save()
        logger.info("Participant ready: participant=%s", participant.id)
    return {"success": True, "ready_at": isoformat(participant.ready_at)}


def disconnect(participant_id: str, user: User | None = None, now: datetime | None = None) -> dict[str, Any]:
    """Mark a participant as gone; completion and readiness stay as they were.

    When the session is over and nobody is left connected, its messages are purged.
    """
    now = now or utcnow()
    participant = load_participant(participant_id, user)
    participant.is_connected = False
    participant.disconnected_at = now
    participant.save()

    session: Session = participant.session
    if session.status == SessionStatus.COMPLETED.value:
        others_connected = Participant.objects(session=session, is_connected=True, id__ne=participant.id).count()
        if not others_connected:
            deleted = purge_session_messages(session)
            logger.info("All participants disconnected, messages deleted: session=%s count=%d", session.id, deleted)
    return {"success": True}


def _ensure_started(participant: Participant) -> None:
    # Only participants that took part in the start may finish
    if participant.started_at is None:
        raise VirtualRoomError(ErrorCode.INVALID_TRANSITION, "The participant never started this session")


def mark_completed(participant_id: str, user: User, now: datetime | None = None) -> dict[str, Any]:
    participant = load_participant(participant_id, user)
    _ensure_started(participant)
    if participant.completed_at is None:
        participant.completed_at = now or utcnow()
        participant.save()
        logger.info("Participant completed: participant=%s", participant.id)
    return {"success": True, "completed_at": isoformat(participant.completed_at)}


def record_result(
    participant_id: str,
    user: User,
    total_score: float,
    correct_answers: int,
    wrong_answers: int,
    blank_answers: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Attach the final result to a started participant and finalize it."""
    participant = load_participant(participant_id, user)
    _ensure_started(participant)
    participant.result = ParticipantResult(
        total_score=total_score,
        correct_answers=correct_answers,
        wrong_answers=wrong_answers,
        blank_answers=blank_answers,
    )
    if participant.completed_at is None:
        participant.completed_at = now or utcnow()
    participant.save()
    logger.info("Result recorded: participant=%s score=%s", participant.id, total_score)
    return {
        "success": True,
        "completed_at": isoformat(participant.completed_at),
        "result": result_view(participant),
    }


def kick_participant(participant_id: str, staff: User, reason: str | None = None, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    participant = load_participant(participant_id)
    participant.is_kicked = True
    participant.kicked_at = now
    participant.kicked_reason = reason or KICKED_DEFAULT_REASON
    participant.is_connected = False
    participant.save()
    logger.warning("Participant kicked: participant=%s staff=%s reason=%s", participant.id, staff.id, participant.kicked_reason)
    return {"success": True, "message": f"{participant.student.name} was removed from the session"}


def get_student_session_status(assignment_id: str, student: User, now: datetime | None = None) -> dict[str, Any]:
    """Latest session of an assignment as seen by one student (used for polling)."""
    now = now or utcnow()
    assignment = load_assignment(assignment_id)
    session: Session | None = Session.objects(
        assignment=assignment,
        status__in=[SessionStatus.WAITING.value, SessionStatus.STARTED.value, SessionStatus.COMPLETED.value],
    ).order_by("-created_at").first()
    if not session:
        return {"has_session": False}

    participant: Participant | None = Participant.objects(session=session, student=student).first()
    if participant and participant.is_kicked:
        return {
            "has_session": True,
            "is_kicked": True,
            "kicked_reason": participant.kicked_reason or KICKED_DEFAULT_REASON,
            "session_id": str(session.id),
            "status": SessionStatus.COMPLETED.value,
        }

    unread = unread_views(participant) if participant else []
    return {
        "has_session": True,
        "is_kicked": False,
        "session_id": str(session.id),
        "simulation_id": str(session.simulation.id),
        "status": session.status,
        "actual_start_at": isoformat(session.actual_start_at),
        "ended_at": isoformat(session.ended_at),
        "waiting_message": session.waiting_message,
        "participant_id": str(participant.id) if participant else None,
        "is_connected": is_really_connected(participant, now) if participant else False,
        "has_started": bool(participant and participant.started_at),
        "is_completed": bool(participant and participant.completed_at),
        "unread_messages": unread,
        "has_unread_messages": bool(unread),
        "time_remaining": time_remaining(session, now=now),
        "poll_interval_seconds": settings.poll_interval_seconds,
        "simulation": {
            "title": session.simulation.title,
            "duration_minutes": session.simulation.duration_minutes,
        },
    }
