from virtual_room.utils.base.enums import BaseEnum, Role
from virtual_room.utils.base.dates import utcnow, as_utc, isoformat
from virtual_room.utils.base.errors import ErrorCode, VirtualRoomError, not_found

__all__ = ["BaseEnum", "Role", "utcnow", "as_utc", "isoformat", "ErrorCode", "VirtualRoomError", "not_found"]
