from mongoengine import ReferenceField, StringField, DateTimeField, ValidationError

from virtual_room.models.base import BaseDocument
from virtual_room.models.group import Group
from virtual_room.models.simulation import Simulation
from virtual_room.models.user import User
from virtual_room.utils.base import BaseEnum


class AssignmentStatus(BaseEnum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class Assignment(BaseDocument):
    """A simulation handed to one student or to a whole group.

    Each assignment owns its own virtual room. `start_date`/`end_date`
    override the simulation's window when set.
    """
    simulation = ReferenceField(document_type=Simulation, required=True, null=False)
    student = ReferenceField(document_type=User, required=False, null=True)
    group = ReferenceField(document_type=Group, required=False, null=True)
    status = StringField(required=True, null=False, default=AssignmentStatus.ACTIVE.value, choices=AssignmentStatus.choices())
    start_date = DateTimeField(required=False, null=True)
    end_date = DateTimeField(required=False, null=True)

    meta = {
        "collection": "assignments",
        "indexes": [
            {"fields": ["simulation"]},
            {"fields": ["student"]},
            {"fields": ["group"]},
        ],
    }

    def validate(self, clean=True):
        super().validate(clean)
        if self.student is None and self.group is None:
            raise ValidationError("Assignment needs a student or a group")

    @property
    def effective_start_date(self):
        return self.start_date or self.simulation.start_date

    @property
    def effective_end_date(self):
        return self.end_date or self.simulation.end_date
