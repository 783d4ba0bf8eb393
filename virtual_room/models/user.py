from mongoengine import EmailField, StringField

from virtual_room.models.base import BaseDocument
from virtual_room.utils.base import Role


class User(BaseDocument):
    """User document.

    Fields:
    - name (str): Full name
    - email (EmailStr, unique): Login identifier
    - password (str, hashed): Bcrypt-hashed password
    - role (str): ADMIN/COLLABORATOR/STUDENT
    - token_version (str): Incremented on logout to invalidate tokens
    """
    name = StringField(required=True, null=False)
    password = StringField(required=True, null=False)
    email = EmailField(required=True, null=False, unique=True)
    role = StringField(required=True, null=False, default=Role.STUDENT.value, choices=Role.choices())
    token_version = StringField(required=True, null=False, default="1")

    meta = {
        "collection": "users",
        "indexes": [
            {"fields": ["email"], "unique": True},
            {"fields": ["role"]},
        ],
    }

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    @property
    def is_staff(self) -> bool:
        return self.role_enum.is_staff

    def to_output(self, fields=None, exclude=None):
        exclude = list(exclude or []) + ["password", "token_version"]
        return super().to_output(fields, exclude)
