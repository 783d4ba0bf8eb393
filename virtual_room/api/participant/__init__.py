from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from virtual_room.models import MESSAGE_MAX_LENGTH, CheatingEventType, User
from virtual_room.services.auth import get_current_user, require_staff, require_student
from virtual_room.services.cheating import log_cheating_event
from virtual_room.services.messaging import get_messages, mark_messages_read, send_message
from virtual_room.services.presence import (
    disconnect,
    get_student_session_status,
    heartbeat,
    join_session,
    kick_participant,
    mark_completed,
    record_result,
    set_ready,
)
from virtual_room.services.rate_limit import limit_route
from virtual_room.utils.base import ErrorCode, VirtualRoomError
from virtual_room.utils.config import settings


router = APIRouter()


class JoinBody(BaseModel):
    assignment_id: str

@router.post("/join")
def join(body: JoinBody, student: User = Depends(require_student)) -> dict:
    """STUDENT: Enter the waiting room of an assignment, or reconnect to it."""
    return join_session(body.assignment_id, student)


@router.get("/status")
def status(assignment_id: str, student: User = Depends(require_student)) -> dict:
    """STUDENT: Polling endpoint for the latest session of an assignment."""
    return get_student_session_status(assignment_id, student)


@router.post("/disconnect")
async def beacon_disconnect(request: Request) -> dict:
    """PUBLIC: Page-unload beacon. Browsers send it as text/plain, so the JSON is parsed by hand."""
    raw = await request.body()
    try:
        payload = json.loads(raw or b"{}")
    except ValueError:
        raise VirtualRoomError(ErrorCode.INVALID_INPUT, "Body must be JSON")
    participant_id = payload.get("participant_id") if isinstance(payload, dict) else None
    if not participant_id:
        raise VirtualRoomError(ErrorCode.INVALID_INPUT, "participant_id is required")
    return await run_in_threadpool(disconnect, str(participant_id))


class HeartbeatBody(BaseModel):
    current_question_index: int | None = Field(default=None, ge=0)
    answered_count: int | None = Field(default=None, ge=0)

@router.post("/{participant_id}/heartbeat")
def send_heartbeat(
    participant_id: str,
    body: HeartbeatBody | None = None,
    student: User = Depends(require_student),
) -> dict:
    body = body or HeartbeatBody()
    return heartbeat(
        participant_id,
        student,
        current_question_index=body.current_question_index,
        answered_count=body.answered_count,
    )


@router.post("/{participant_id}/ready")
def ready(participant_id: str, student: User = Depends(require_student)) -> dict:
    return set_ready(participant_id, student)


@router.post("/{participant_id}/disconnect")
def leave(participant_id: str, current_user: User = Depends(get_current_user)) -> dict:
    return disconnect(participant_id, current_user)


@router.post("/{participant_id}/complete")
def complete(participant_id: str, current_user: User = Depends(get_current_user)) -> dict:
    return mark_completed(participant_id, current_user)


class ResultBody(BaseModel):
    total_score: float
    correct_answers: int = Field(ge=0)
    wrong_answers: int = Field(ge=0)
    blank_answers: int = Field(ge=0)

@router.post("/{participant_id}/result")
def result(participant_id: str, body: ResultBody, current_user: User = Depends(get_current_user)) -> dict:
    """PROTECTED: Store the final result; the owning student or staff."""
    return record_result(
        participant_id,
        current_user,
        total_score=body.total_score,
        correct_answers=body.correct_answers,
        wrong_answers=body.wrong_answers,
        blank_answers=body.blank_answers,
    )


class CheatingEventBody(BaseModel):
    event_type: CheatingEventType
    description: str | None = None
    metadata: dict[str, Any] | None = None

@router.post("/{participant_id}/cheating-events")
def cheating_event(
    participant_id: str,
    body: CheatingEventBody,
    student: User = Depends(require_student),
) -> dict:
    return log_cheating_event(
        participant_id,
        student,
        body.event_type.value,
        description=body.description,
        metadata=body.metadata,
    )


class KickBody(BaseModel):
    reason: str | None = None

@router.post("/{participant_id}/kick")
def kick(participant_id: str, body: KickBody | None = None, staff: User = Depends(require_staff)) -> dict:
    """STAFF: Remove a student from the session; they cannot rejoin."""
    return kick_participant(participant_id, staff, reason=body.reason if body else None)


@router.get("/{participant_id}/messages")
def messages(participant_id: str, current_user: User = Depends(get_current_user)) -> list[dict]:
    return get_messages(participant_id, current_user)


class MessageBody(BaseModel):
    message: str = Field(min_length=1, max_length=MESSAGE_MAX_LENGTH)

@router.post(
    "/{participant_id}/messages",
    dependencies=[Depends(limit_route(settings.message_rate_limit_seconds))],
)
def post_message(participant_id: str, body: MessageBody, current_user: User = Depends(get_current_user)) -> dict:
    """PROTECTED: Staff write to any participant, students only to staff on their own thread."""
    return send_message(participant_id, body.message, current_user)


class MarkReadBody(BaseModel):
    message_ids: list[str] | None = None

@router.post("/{participant_id}/messages/read")
def read_messages(
    participant_id: str,
    body: MarkReadBody | None = None,
    current_user: User = Depends(get_current_user),
) -> dict:
    count = mark_messages_read(participant_id, current_user, message_ids=body.message_ids if body else None)
    return {"success": True, "marked": count}
