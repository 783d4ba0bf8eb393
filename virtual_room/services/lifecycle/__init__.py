"""Session lifecycle: get-or-create, start, end, cancel and timed expiry.

Status only moves forward (WAITING -> STARTED -> COMPLETED, or
WAITING -> CANCELLED). Every transition is a conditional update on the
current status, so concurrent callers cannot both win.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from virtual_room.connections.redis import get_redis
from virtual_room.models import (
    AccessType,
    Assignment,
    AssignmentStatus,
    OPEN_STATUSES,
    Participant,
    Session,
    SessionStatus,
    User,
)
from virtual_room.models.session import TRANSITIONS
from virtual_room.services.lookup import load_assignment, load_session
from virtual_room.services.messaging import purge_session_messages
from virtual_room.services.scheduler import schedule_at
from virtual_room.services.session_state import (
    build_session_state,
    invited_students,
    is_really_connected,
    session_deadline,
    session_view,
)
from virtual_room.utils.base import ErrorCode, VirtualRoomError, as_utc, isoformat, utcnow
from virtual_room.utils.config import settings

logger = logging.getLogger(__name__)


def ensure_room_assignment(assignment: Assignment, now: datetime | None = None, check_expiry: bool = True) -> None:
    """Reject assignments that cannot host a virtual room right now."""
    now = now or utcnow()
    if assignment.simulation.access_type != AccessType.ROOM.value:
        raise VirtualRoomError(ErrorCode.NOT_ROOM_SIMULATION, "This simulation is not configured for the virtual room")
    end_date = as_utc(assignment.effective_end_date)
    if check_expiry and end_date is not None and end_date < now:
        raise VirtualRoomError(ErrorCode.ASSIGNMENT_EXPIRED, "The assignment has expired")
    if assignment.status != AssignmentStatus.ACTIVE.value:
        raise VirtualRoomError(ErrorCode.ASSIGNMENT_CLOSED, "The assignment is closed; reopen it to use the virtual room")


def find_open_session(assignment: Assignment) -> Session | None:
    return Session.objects(assignment=assignment, status__in=OPEN_STATUSES).order_by("-created_at").first()


def get_or_create_session(assignment_id: str, staff: User, now: datetime | None = None) -> dict[str, Any]:
    """Return the open session of an assignment, creating a WAITING one if needed.

    Creation is serialized per assignment with a Redis lock so concurrent
    admin tabs converge on a single session.
    """
    now = now or utcnow()
    assignment = load_assignment(assignment_id)
    ensure_room_assignment(assignment, now)

    lock = get_redis().lock(
        f"vr:session-create:{assignment.id}",
        timeout=settings.session_lock_timeout_seconds,
        blocking_timeout=settings.session_lock_timeout_seconds,
    )
    created = False
    with lock:
        session = find_open_session(assignment)
        if not session:
            session = Session(
                simulation=assignment.simulation,
                assignment=assignment,
                status=SessionStatus.WAITING.value,
                scheduled_start_at=assignment.effective_start_date,
            )
            session.save()
            created = True

    if created:
        logger.info(
            "Session created: session=%s simulation=%s assignment=%s staff=%s",
            session.id, assignment.simulation.id, assignment.id, staff.id,
        )
    state = build_session_state(session, now)
    state["assignment_id"] = str(assignment.id)
    state["created"] = created
    return state


def _transition(session: Session, source: SessionStatus, target: SessionStatus, **updates: Any) -> bool:
    """Atomically move `session` from `source` to `target`; False if someone else moved it first."""
    if target not in TRANSITIONS[source]:
        raise ValueError(f"Illegal transition {source.value} -> {target.value}")
    fields = {f"set__{name}": value for name, value in updates.items()}
    updated = Session.objects(id=session.id, status=source.value).update_one(
        set__status=target.value,
        set__updated_at=utcnow(),
        **fields,
    )
    if updated:
        session.reload()
    return bool(updated)


def start_session(session_id: str, staff: User, force_start: bool = False, now: datetime | None = None) -> dict[str, Any]:
    """Start the run for everyone connected right now.

    Without `force_start` the call fails with NOT_ALL_CONNECTED while any
    invited student is missing, and the session stays WAITING. Students not
    connected at this instant are excluded from the run for good.
    """
    now = now or utcnow()
    session = load_session(session_id)
    if session.status != SessionStatus.WAITING.value:
        if session.status == SessionStatus.CANCELLED.value:
            raise VirtualRoomError(ErrorCode.INVALID_TRANSITION, "The session was cancelled")
        raise VirtualRoomError(ErrorCode.ALREADY_STARTED, "The session has already been started or completed")

    roster_ids = {str(s.id) for s in invited_students(session.assignment)}
    participants = list(Participant.objects(session=session))
    connected = [
        p for p in participants
        if not p.is_kicked and is_really_connected(p, now) and str(p.student.id) in roster_ids
    ]

    if not force_start and len(connected) < len(roster_ids):
        raise VirtualRoomError(
            ErrorCode.NOT_ALL_CONNECTED,
            f"Only {len(connected)}/{len(roster_ids)} students are connected; use force_start to start anyway",
            connected_count=len(connected),
            total_invited=len(roster_ids),
        )

    if not _transition(session, SessionStatus.WAITING, SessionStatus.STARTED, actual_start_at=now, started_by=staff):
        raise VirtualRoomError(ErrorCode.ALREADY_STARTED, "The session has already been started or completed")

    if connected:
        Participant.objects(id__in=[p.id for p in connected], started_at=None).update(set__started_at=now)

    schedule_session_expiry(session)
    logger.info(
        "Session started: session=%s staff=%s participants=%d/%d forced=%s",
        session.id, staff.id, len(connected), len(roster_ids), force_start,
    )
    return {
        "success": True,
        "started_at": isoformat(now),
        "participants_started": len(connected),
    }


def end_session(session_id: str, staff: User | None = None, now: datetime | None = None) -> dict[str, Any]:
    """Complete a started session. Unfinished participants keep their progress as is."""
    now = now or utcnow()
    session = load_session(session_id)
    if not session.can_transition(SessionStatus.COMPLETED):
        raise VirtualRoomError(ErrorCode.INVALID_TRANSITION, f"Cannot end a session in status {session.status}")
    if not _transition(session, SessionStatus.STARTED, SessionStatus.COMPLETED, ended_at=now):
        raise VirtualRoomError(ErrorCode.INVALID_TRANSITION, "The session was ended concurrently")

    Participant.objects(session=session).update(set__is_connected=False)
    deleted = purge_session_messages(session)
    logger.info(
        "Session ended: session=%s by=%s messages_deleted=%d",
        session.id, staff.id if staff else "scheduler", deleted,
    )
    return {"success": True, "session": session_view(session)}


def cancel_session(session_id: str, staff: User) -> dict[str, Any]:
    session = load_session(session_id)
    if not session.can_transition(SessionStatus.CANCELLED):
        raise VirtualRoomError(ErrorCode.INVALID_TRANSITION, f"Cannot cancel a session in status {session.status}")
    if not _transition(session, SessionStatus.WAITING, SessionStatus.CANCELLED, ended_at=utcnow()):
        raise VirtualRoomError(ErrorCode.INVALID_TRANSITION, "The session changed status concurrently")
    logger.info("Session cancelled: session=%s staff=%s", session.id, staff.id)
    return {"success": True, "session": session_view(session)}


def expire_session(session_id: str, now: datetime | None = None) -> bool:
    """Background job: end a started session once its deadline has passed."""
    now = now or utcnow()
    session = Session.objects(id=session_id).first()
    if not session or session.status != SessionStatus.STARTED.value:
        return False
    deadline = session_deadline(session)
    if deadline is None or deadline > now:
        return False
    try:
        end_session(session_id, now=now)
    except VirtualRoomError:
        # Ended manually in the meantime
        return False
    return True


def schedule_session_expiry(session: Session) -> None:
    deadline = session_deadline(session)
    if deadline is None:
        return
    schedule_at(deadline, expire_session, str(session.id), job_id=f"vr:expire:{session.id}")


def reconcile_started_sessions() -> int:
    """Reschedule expiry for every running session, e.g. after a restart."""
    sessions: list[Session] = Session.objects(status=SessionStatus.STARTED.value)
    count = 0
    for session in sessions:
        schedule_session_expiry(session)
        count += 1
    if count:
        logger.info("Rescheduled expiry for %d running sessions", count)
    return count
