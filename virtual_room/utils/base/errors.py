from __future__ import annotations

from typing import Any

from virtual_room.utils.base.enums import BaseEnum


class ErrorCode(BaseEnum):
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    NOT_ALL_CONNECTED = "NOT_ALL_CONNECTED"
    ALREADY_STARTED = "ALREADY_STARTED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ASSIGNMENT_EXPIRED = "ASSIGNMENT_EXPIRED"
    ASSIGNMENT_CLOSED = "ASSIGNMENT_CLOSED"
    NOT_ROOM_SIMULATION = "NOT_ROOM_SIMULATION"
    NOT_INVITED = "NOT_INVITED"
    NO_ACTIVE_SESSION = "NO_ACTIVE_SESSION"
    LATE_JOIN = "LATE_JOIN"
    KICKED = "KICKED"
    INVALID_INPUT = "INVALID_INPUT"


_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.NO_ACTIVE_SESSION: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_INVITED: 403,
    ErrorCode.KICKED: 403,
    ErrorCode.NOT_ALL_CONNECTED: 409,
    ErrorCode.ALREADY_STARTED: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.LATE_JOIN: 409,
    ErrorCode.ASSIGNMENT_EXPIRED: 400,
    ErrorCode.ASSIGNMENT_CLOSED: 400,
    ErrorCode.NOT_ROOM_SIMULATION: 400,
    ErrorCode.INVALID_INPUT: 422,
}


class VirtualRoomError(Exception):
    """Domain error carrying a machine-readable code.

    Clients branch on `code` (e.g. NOT_ALL_CONNECTED to offer a forced start),
    never on the human-readable message.
    """

    def __init__(self, code: ErrorCode, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra = extra

    @property
    def status_code(self) -> int:
        return _STATUS_BY_CODE.get(self.code, 400)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, **self.extra}


def not_found(what: str) -> VirtualRoomError:
    return VirtualRoomError(ErrorCode.NOT_FOUND, f"{what} not found")
