from mongoengine import StringField, IntField, DateTimeField

from virtual_room.models.base import BaseDocument
from virtual_room.utils.base import BaseEnum


class AccessType(BaseEnum):
    ROOM = "ROOM"
    OPEN = "OPEN"


class Simulation(BaseDocument):
    """Simulated exam definition.

    Fields:
    - title (str)
    - duration_minutes (int): length of a live run
    - total_questions (int): used for progress percentages
    - access_type (str): ROOM runs go through the virtual room, OPEN ones do not
    - start_date/end_date (datetime|None): default availability window
    """
    title = StringField(required=True, null=False)
    duration_minutes = IntField(required=True, null=False, min_value=1)
    total_questions = IntField(required=True, null=False, default=0, min_value=0)
    access_type = StringField(required=True, null=False, default=AccessType.ROOM.value, choices=AccessType.choices())
    start_date = DateTimeField(required=False, null=True)
    end_date = DateTimeField(required=False, null=True)

    meta = {
        "collection": "simulations",
        "indexes": [
            {"fields": ["title"]},
        ],
    }
