from __future__ import annotations

import logging
from typing import Any

from virtual_room.models import CheatingEvent, CheatingEventType, User
from virtual_room.services.lookup import load_participant
from virtual_room.utils.base import ErrorCode, VirtualRoomError, isoformat

logger = logging.getLogger(__name__)


def log_cheating_event(
    participant_id: str,
    user: User,
    event_type: str,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Append a suspicious client event to the participant's record.

    Events are stored as reported: no de-duplication, scoring or automatic action.
    """
    if event_type not in {t.value for t in CheatingEventType}:
        raise VirtualRoomError(ErrorCode.INVALID_INPUT, f"Unknown cheating event type: {event_type}")
    participant = load_participant(participant_id, user, allow_staff=False)

    event = CheatingEvent(
        participant=participant,
        event_type=event_type,
        description=description,
        metadata=metadata or {},
    )
    event.save()
    logger.warning(
        "Cheating event: participant=%s session=%s type=%s",
        participant.id, participant.session.id, event_type,
    )
    return {
        "success": True,
        "event_id": str(event.id),
        "created_at": isoformat(event.created_at),
    }
