"""Staff <-> participant message side-channel.

Messages are stored unread whatever the participant's connectivity and
surface on the recipient's next poll.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from bson.objectid import ObjectId

from virtual_room.models import (
    MESSAGE_MAX_LENGTH,
    Participant,
    SenderType,
    Session,
    SessionMessage,
    User,
)
from virtual_room.services.lookup import load_participant
from virtual_room.utils.base import ErrorCode, VirtualRoomError, isoformat, utcnow

logger = logging.getLogger(__name__)


def _view(message: SessionMessage, sender: User | None = None) -> dict[str, Any]:
    sender = sender or message.sender
    return {
        "id": str(message.id),
        "participant_id": str(message.participant.id),
        "sender_type": message.sender_type,
        "sender_id": str(sender.id),
        "sender_name": sender.name,
        "message": message.message,
        "is_read": message.is_read,
        "read_at": isoformat(message.read_at),
        "created_at": isoformat(message.created_at),
    }


def send_message(participant_id: str, message: str, sender: User) -> dict[str, Any]:
    """Store a message for a participant; staff may write in any session state."""
    text = (message or "").strip()
    if not text or len(text) > MESSAGE_MAX_LENGTH:
        raise VirtualRoomError(ErrorCode.INVALID_INPUT, f"Message must be 1-{MESSAGE_MAX_LENGTH} characters")

    participant = load_participant(participant_id, sender)
    sender_type = SenderType.ADMIN if sender.is_staff else SenderType.STUDENT

    sent = SessionMessage(
        participant=participant,
        sender_type=sender_type.value,
        sender=sender,
        message=text,
    )
    sent.save()
    logger.info(
        "Message sent: participant=%s sender=%s type=%s",
        participant.id, sender.id, sender_type.value,
    )
    return _view(sent, sender)


def get_messages(participant_id: str, viewer: User) -> list[dict[str, Any]]:
    participant = load_participant(participant_id, viewer)
    messages = SessionMessage.objects(participant=participant).order_by("created_at")
    return [_view(m) for m in messages]


def unread_for_student(participant: Participant) -> list[SessionMessage]:
    """Unread staff messages addressed to the participant, newest first."""
    return list(
        SessionMessage.objects(
            participant=participant,
            is_read=False,
            sender_type=SenderType.ADMIN.value,
        ).order_by("-created_at")
    )


def unread_views(participant: Participant) -> list[dict[str, Any]]:
    return [_view(m) for m in unread_for_student(participant)]


def mark_messages_read(
    participant_id: str,
    viewer: User,
    message_ids: list[str] | None = None,
    now: datetime | None = None,
) -> int:
    """Mark the other side's messages as read; returns how many changed.

    Students acknowledge staff messages, staff acknowledge student ones.
    """
    now = now or utcnow()
    participant = load_participant(participant_id, viewer)
    sender_type = SenderType.STUDENT if viewer.is_staff else SenderType.ADMIN
    query = SessionMessage.objects(participant=participant, sender_type=sender_type.value, is_read=False)
    if message_ids is not None:
        query = query.filter(id__in=[m for m in message_ids if ObjectId.is_valid(m)])
    return query.update(set__is_read=True, set__read_at=now)


def purge_session_messages(session: Session) -> int:
    participant_ids = [p.id for p in Participant.objects(session=session).only("id")]
    if not participant_ids:
        return 0
    return SessionMessage.objects(participant__in=participant_ids).delete()
