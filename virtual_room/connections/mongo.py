from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import certifi
from fastapi import FastAPI
from mongoengine import connect, disconnect

from virtual_room.utils.config import settings


def init_mongo() -> None:
    uri = settings.mongo_uri
    options: dict[str, Any] = {"tz_aware": True}
    # Atlas clusters need the bundled CA file; plain local URIs do not.
    if uri.startswith("mongodb+srv://"):
        options["tlsCAFile"] = certifi.where()
    connect(host=uri, alias="default", **options)


def close_mongo() -> None:
    disconnect(alias="default")


@asynccontextmanager
async def mongo_lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_mongo()
    try:
        yield
    finally:
        close_mongo()
