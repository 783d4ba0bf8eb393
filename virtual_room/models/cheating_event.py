from mongoengine import ReferenceField, StringField

from virtual_room.models.base import BaseDocument
from virtual_room.models.participant import Participant
from virtual_room.utils.base import BaseEnum


class CheatingEventType(BaseEnum):
    TAB_SWITCH = "TAB_SWITCH"
    WINDOW_BLUR = "WINDOW_BLUR"
    COPY_ATTEMPT = "COPY_ATTEMPT"
    PASTE_ATTEMPT = "PASTE_ATTEMPT"
    RIGHT_CLICK = "RIGHT_CLICK"
    KEYBOARD_SHORTCUT = "KEYBOARD_SHORTCUT"
    FULLSCREEN_EXIT = "FULLSCREEN_EXIT"
    OTHER = "OTHER"


class CheatingEvent(BaseDocument):
    """Suspicious client-side occurrence reported by a student's exam client.

    Append-only. Extra client context goes in the inherited `metadata` dict.
    """
    participant = ReferenceField(document_type=Participant, required=True, null=False)
    event_type = StringField(required=True, null=False, choices=CheatingEventType.choices())
    description = StringField(required=False, null=True)

    meta = {
        "collection": "cheating_events",
        "indexes": [
            {"fields": ["participant", "-created_at"]},
        ],
    }
