from enum import Enum


class BaseEnum(Enum):
    @classmethod
    def choices(cls):
        return [(item.value, item.name) for item in cls]


class Role(BaseEnum):
    ADMIN = "ADMIN"
    COLLABORATOR = "COLLABORATOR"
    STUDENT = "STUDENT"

    @property
    def is_staff(self) -> bool:
        return self in (Role.ADMIN, Role.COLLABORATOR)
