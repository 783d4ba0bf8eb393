from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from virtual_room.models import SessionStatus, User
from virtual_room.services.auth import get_current_user, require_staff
from virtual_room.services.lifecycle import (
    cancel_session,
    end_session,
    get_or_create_session,
    start_session,
)
from virtual_room.services.lookup import load_session
from virtual_room.services.rankings import get_session_rankings
from virtual_room.services.session_state import get_session_state
from virtual_room.utils.config import settings


router = APIRouter()
logger = logging.getLogger(__name__)

FINAL_STATUSES = {SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value}


class GetOrCreateBody(BaseModel):
    assignment_id: str

@router.post("")
def open_session(body: GetOrCreateBody, staff: User = Depends(require_staff)) -> dict:
    """STAFF: Return the open session of an assignment, creating it if needed."""
    return get_or_create_session(body.assignment_id, staff)


@router.get("/{session_id}")
def session_state(
    session_id: str,
    participant_id: str | None = None,
    staff: User = Depends(require_staff),
) -> dict:
    """STAFF: Full snapshot, optionally with the message thread of one participant."""
    return get_session_state(session_id, participant_id_for_messages=participant_id)


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _state_events(request: Request, session_id: str) -> AsyncIterator[str]:
    """Push the snapshot once, then again whenever it changes, until the session is over."""
    state = await run_in_threadpool(get_session_state, session_id)
    previous = _sse("init", state)
    yield previous
    last_sent = time.monotonic()

    while state["session"]["status"] not in FINAL_STATUSES:
        await asyncio.sleep(settings.stream_interval_seconds)
        if await request.is_disconnected():
            logger.debug("Stream client went away: session=%s", session_id)
            return
        state = await run_in_threadpool(get_session_state, session_id)
        frame = _sse("update", state)
        if frame != previous:
            previous = frame
            last_sent = time.monotonic()
            yield frame
        elif time.monotonic() - last_sent >= settings.stream_keepalive_seconds:
            # Idle connections get dropped by proxies
            last_sent = time.monotonic()
            yield ": heartbeat\n\n"


@router.get("/{session_id}/stream")
async def stream_session(
    session_id: str,
    request: Request,
    staff: User = Depends(require_staff),
) -> StreamingResponse:
    """STAFF: Server-sent events carrying the same snapshot as the polling endpoint."""
    # Fail fast with a normal 404 before the stream opens
    await run_in_threadpool(load_session, session_id)
    logger.info("Stream opened: session=%s staff=%s", session_id, staff.id)
    return StreamingResponse(
        _state_events(request, session_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


class StartBody(BaseModel):
    force_start: bool = False

@router.post("/{session_id}/start")
def start(session_id: str, body: StartBody, staff: User = Depends(require_staff)) -> dict:
    """STAFF: Start the run. Without force_start every invited student must be connected."""
    return start_session(session_id, staff, force_start=body.force_start)


@router.post("/{session_id}/end")
def end(session_id: str, staff: User = Depends(require_staff)) -> dict:
    return end_session(session_id, staff)


@router.post("/{session_id}/cancel")
def cancel(session_id: str, staff: User = Depends(require_staff)) -> dict:
    return cancel_session(session_id, staff)


@router.get("/{session_id}/rankings")
def rankings(session_id: str, current_user: User = Depends(get_current_user)) -> dict:
    """PROTECTED: Leaderboard; students see other students anonymized."""
    return get_session_rankings(session_id, current_user)
