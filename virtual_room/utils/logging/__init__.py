"""Logging configuration with per-request correlation ids."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from logging import Logger
from uuid import uuid4

from virtual_room.utils.config import settings

REQUEST_ID_HEADER = "X-Request-ID"
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(value: str | None = None) -> str:
    """Bind a request id to the current context and return it."""
    request_id = value or uuid4().hex
    _request_id.set(request_id)
    return request_id


class RequestIdFilter(logging.Filter):
    """Inject the current request id (first 8 chars) into every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        record.request_id = f"req:{request_id[:8]}" if request_id else "-"
        return True


def configure_logging(level: str | None = None) -> Logger:
    """Configure basic logging for the service and return its root logger."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s | %(levelname)s | %(request_id)s | %(name)s | %(message)s",
    )
    request_filter = RequestIdFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(request_filter)
    return logging.getLogger("virtual_room")
