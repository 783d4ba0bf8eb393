from virtual_room.models.user import User
from virtual_room.models.group import Group
from virtual_room.models.simulation import Simulation, AccessType
from virtual_room.models.assignment import Assignment, AssignmentStatus
from virtual_room.models.session import Session, SessionStatus, OPEN_STATUSES
from virtual_room.models.participant import Participant, ParticipantResult
from virtual_room.models.cheating_event import CheatingEvent, CheatingEventType
from virtual_room.models.message import SessionMessage, SenderType, MESSAGE_MAX_LENGTH

__all__ = [
    "User",
    "Group",
    "Simulation",
    "AccessType",
    "Assignment",
    "AssignmentStatus",
    "Session",
    "SessionStatus",
    "OPEN_STATUSES",
    "Participant",
    "ParticipantResult",
    "CheatingEvent",
    "CheatingEventType",
    "SessionMessage",
    "SenderType",
    "MESSAGE_MAX_LENGTH",
]
