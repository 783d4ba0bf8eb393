from mongoengine import ReferenceField, StringField, BooleanField, DateTimeField

from virtual_room.models.base import BaseDocument
from virtual_room.models.participant import Participant
from virtual_room.models.user import User
from virtual_room.utils.base import BaseEnum

MESSAGE_MAX_LENGTH = 1000


class SenderType(BaseEnum):
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"


class SessionMessage(BaseDocument):
    """Side-channel message between staff and one participant.

    Stored regardless of the participant's connectivity; read state is
    tracked per message.
    """
    participant = ReferenceField(document_type=Participant, required=True, null=False)
    sender_type = StringField(required=True, null=False, choices=SenderType.choices())
    sender = ReferenceField(document_type=User, required=True, null=False)
    message = StringField(required=True, null=False, min_length=1, max_length=MESSAGE_MAX_LENGTH)
    is_read = BooleanField(required=True, null=False, default=False)
    read_at = DateTimeField(required=False, null=True)

    meta = {
        "collection": "session_messages",
        "indexes": [
            {"fields": ["participant", "created_at"]},
            {"fields": ["participant", "is_read", "sender_type"]},
        ],
    }
