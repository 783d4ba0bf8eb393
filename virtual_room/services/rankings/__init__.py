from __future__ import annotations

from typing import Any

from virtual_room.models import Participant, SessionStatus, User
from virtual_room.services.lookup import load_session
from virtual_room.utils.base import ErrorCode, VirtualRoomError, as_utc, isoformat

ANONYMOUS_PREFIX = "Student"


def _display_name(participant: Participant, viewer: User) -> str:
    if viewer.is_staff or participant.student.id == viewer.id:
        return participant.student.name
    return f"{ANONYMOUS_PREFIX} {participant.anonymous_id[:6]}"


def get_session_rankings(session_id: str, viewer: User) -> dict[str, Any]:
    """Leaderboard of finished participants, best score first.

    Ties on score share a position; completion time only breaks display order.
    Students see their own name and an anonymous handle for everyone else.
    """
    session = load_session(session_id)
    participants: list[Participant] = list(Participant.objects(session=session))
    if not viewer.is_staff and not any(p.student.id == viewer.id for p in participants):
        raise VirtualRoomError(ErrorCode.FORBIDDEN, "You did not take part in this session")

    finished = [p for p in participants if p.result is not None and p.completed_at is not None]
    finished.sort(key=lambda p: (-p.result.total_score, as_utc(p.completed_at)))

    rankings = []
    position = 0
    previous_score = None
    for index, participant in enumerate(finished, start=1):
        if participant.result.total_score != previous_score:
            position = index
            previous_score = participant.result.total_score
        rankings.append({
            "position": position,
            "student_name": _display_name(participant, viewer),
            "is_current_user": participant.student.id == viewer.id,
            "total_score": participant.result.total_score,
            "correct_answers": participant.result.correct_answers,
            "wrong_answers": participant.result.wrong_answers,
            "blank_answers": participant.result.blank_answers,
            "completed_at": isoformat(participant.completed_at),
        })

    return {
        "session_id": str(session.id),
        "simulation_title": session.simulation.title,
        "total_participants": len(participants),
        "completed_participants": len(rankings),
        "rankings": rankings,
        "is_session_completed": session.status == SessionStatus.COMPLETED.value,
    }
