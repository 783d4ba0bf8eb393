from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from rq import Queue
from rq_scheduler import Scheduler
from redis import Redis

from virtual_room.connections.redis import get_redis

QUEUE_NAME = "virtual-room"

logger = logging.getLogger(__name__)


def _redis_conn() -> Redis:
    # rq stores pickled payloads, so it needs a client that does not decode responses
    client = get_redis()
    kwargs = dict(client.connection_pool.connection_kwargs)
    if not kwargs.get("decode_responses"):
        return client
    kwargs["decode_responses"] = False
    return Redis(**kwargs)


def get_scheduler() -> Scheduler:
    return Scheduler(queue_name=QUEUE_NAME, connection=_redis_conn())


def get_queue() -> Queue:
    return Queue(name=QUEUE_NAME, connection=_redis_conn())


def schedule_at(run_at: datetime, func: Callable, *args, job_id: str | None = None, **kwargs) -> None:
    """Enqueue `func` at `run_at`. A fixed `job_id` makes rescheduling overwrite the old entry."""
    sched = get_scheduler()
    if run_at.tzinfo is None:
        run_at = run_at.replace(tzinfo=timezone.utc)
    if job_id is not None:
        kwargs["job_id"] = job_id
    sched.enqueue_at(run_at, func, *args, **kwargs)
    logger.debug("Scheduled %s at %s (job %s)", getattr(func, "__name__", func), run_at.isoformat(), job_id)
