from mongoengine import ReferenceField, StringField, DateTimeField

from virtual_room.models.assignment import Assignment
from virtual_room.models.base import BaseDocument
from virtual_room.models.simulation import Simulation
from virtual_room.models.user import User
from virtual_room.utils.base import BaseEnum


class SessionStatus(BaseEnum):
    WAITING = "WAITING"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = [SessionStatus.WAITING.value, SessionStatus.STARTED.value]

# Allowed forward moves; nothing ever goes back.
TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.WAITING: {SessionStatus.STARTED, SessionStatus.CANCELLED},
    SessionStatus.STARTED: {SessionStatus.COMPLETED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.CANCELLED: set(),
}


class Session(BaseDocument):
    """One live run of a simulation for the students of an assignment.

    Fields:
    - simulation/assignment (refs)
    - status (str): WAITING -> STARTED -> COMPLETED, or WAITING -> CANCELLED
    - scheduled_start_at/actual_start_at/ended_at (datetime|None)
    - started_by (Ref[User]|None): staff member who started the run
    - waiting_message (str|None): shown to students in the waiting room
    """
    simulation = ReferenceField(document_type=Simulation, required=True, null=False)
    assignment = ReferenceField(document_type=Assignment, required=True, null=False)
    status = StringField(required=True, null=False, default=SessionStatus.WAITING.value, choices=SessionStatus.choices())

    scheduled_start_at = DateTimeField(required=False, null=True)
    actual_start_at = DateTimeField(required=False, null=True)
    ended_at = DateTimeField(required=False, null=True)
    started_by = ReferenceField(document_type=User, required=False, null=True)
    waiting_message = StringField(required=False, null=True)

    meta = {
        "collection": "sessions",
        "indexes": [
            {"fields": ["assignment", "status"]},
            {"fields": ["simulation"]},
        ],
    }

    @property
    def status_enum(self) -> SessionStatus:
        return SessionStatus(self.status)

    def can_transition(self, target: SessionStatus) -> bool:
        return target in TRANSITIONS[self.status_enum]
