from uuid import uuid4

from mongoengine import (
    ReferenceField,
    DateTimeField,
    BooleanField,
    IntField,
    FloatField,
    StringField,
    EmbeddedDocumentField,
)

from virtual_room.models.base import BaseDocument, BaseEmbeddedDocument
from virtual_room.models.session import Session
from virtual_room.models.user import User


class ParticipantResult(BaseEmbeddedDocument):
    """Embedded: final outcome submitted by the student's exam client."""
    total_score = FloatField(required=True, null=False, default=0)
    correct_answers = IntField(required=True, null=False, default=0, min_value=0)
    wrong_answers = IntField(required=True, null=False, default=0, min_value=0)
    blank_answers = IntField(required=True, null=False, default=0, min_value=0)


class Participant(BaseDocument):
    """A student's live attendance record within a session.

    Fields:
    - session/student (refs), unique together
    - is_connected/last_heartbeat: liveness, see session_state for the timeout
    - ready_at/started_at/completed_at: set once, never cleared
    - current_question_index/answered_count: progress reported by heartbeats
    - is_kicked/kicked_reason/kicked_at: staff removal
    - anonymous_id (str): public handle used in student-facing rankings
    - result (ParticipantResult|None)
    """
    session = ReferenceField(document_type=Session, required=True, null=False)
    student = ReferenceField(document_type=User, required=True, null=False)

    is_connected = BooleanField(required=True, null=False, default=False)
    last_heartbeat = DateTimeField(required=False, null=True)
    joined_at = DateTimeField(required=False, null=True)
    disconnected_at = DateTimeField(required=False, null=True)

    ready_at = DateTimeField(required=False, null=True)
    started_at = DateTimeField(required=False, null=True)
    completed_at = DateTimeField(required=False, null=True)

    current_question_index = IntField(required=True, null=False, default=0, min_value=0)
    answered_count = IntField(required=True, null=False, default=0, min_value=0)

    is_kicked = BooleanField(required=True, null=False, default=False)
    kicked_reason = StringField(required=False, null=True)
    kicked_at = DateTimeField(required=False, null=True)

    anonymous_id = StringField(required=True, null=False, default=lambda: uuid4().hex)
    result = EmbeddedDocumentField(ParticipantResult, required=False, null=True)

    meta = {
        "collection": "participants",
        "indexes": [
            {"fields": ["session", "student"], "unique": True},
            {"fields": ["session"]},
        ],
    }
