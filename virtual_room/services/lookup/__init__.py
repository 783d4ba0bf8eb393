from __future__ import annotations

from virtual_room.models import Assignment, Participant, Session, User
from virtual_room.models.base import find_by_id
from virtual_room.utils.base import ErrorCode, VirtualRoomError, not_found


def load_assignment(assignment_id: str) -> Assignment:
    assignment: Assignment | None = find_by_id(Assignment, assignment_id)
    if not assignment:
        raise not_found("Assignment")
    return assignment


def load_session(session_id: str) -> Session:
    session: Session | None = find_by_id(Session, session_id)
    if not session:
        raise not_found("Session")
    return session


def load_participant(participant_id: str, user: User | None = None, allow_staff: bool = True) -> Participant:
    """Load a participant and, when `user` is given, check they may act on it.

    Students may only touch their own participant record; staff may touch
    any record unless `allow_staff` is False.
    """
    participant: Participant | None = find_by_id(Participant, participant_id)
    if not participant:
        raise not_found("Participant")
    if user is None:
        return participant
    if user.is_staff and allow_staff:
        return participant
    if participant.student.id != user.id:
        raise VirtualRoomError(ErrorCode.FORBIDDEN, "Not allowed to act for another student")
    return participant
