"""Background worker running scheduled session expiry jobs.

Run next to `rqscheduler`, which moves due jobs onto the queue:

    python -m virtual_room.worker
"""
from __future__ import annotations

from rq import Worker

from virtual_room.connections.mongo import init_mongo, close_mongo
from virtual_room.connections.redis import init_redis, close_redis
from virtual_room.services.scheduler import get_queue
from virtual_room.utils.logging import configure_logging


def main() -> None:
    logger = configure_logging()
    init_mongo()
    init_redis()
    try:
        queue = get_queue()
        logger.info("Worker listening on queue %s", queue.name)
        Worker([queue], connection=queue.connection).work()
    finally:
        close_redis()
        close_mongo()


if __name__ == "__main__":
    main()
