from mongoengine import StringField, ListField, ReferenceField

from virtual_room.models.base import BaseDocument
from virtual_room.models.user import User


class Group(BaseDocument):
    """A class of students that can be assigned a simulation as a whole."""
    name = StringField(required=True, null=False)
    members = ListField(ReferenceField(document_type=User), null=False, default=list)

    meta = {
        "collection": "groups",
        "indexes": [
            {"fields": ["name"]},
        ],
    }
