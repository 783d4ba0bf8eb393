import logging
from contextlib import AsyncExitStack

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from virtual_room.connections import mongo_lifespan, redis_lifespan
from virtual_room.api.user import router as user_router
from virtual_room.api.session import router as session_router
from virtual_room.api.participant import router as participant_router
from virtual_room.services.lifecycle import reconcile_started_sessions
from virtual_room.utils.base import VirtualRoomError
from virtual_room.utils.config import settings
from virtual_room.utils.logging import REQUEST_ID_HEADER, configure_logging, set_request_id


logger = logging.getLogger("virtual_room")


async def combined_lifespan(app: FastAPI):
    configure_logging()
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(mongo_lifespan(app))
        await stack.enter_async_context(redis_lifespan(app))

        try:
            reconcile_started_sessions()
        except Exception:
            # Expiry is a convenience; a down scheduler must not keep the API from booting
            logger.exception("Could not reschedule running sessions")
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        yield


app = FastAPI(title="Virtual Room", version="0.1.0", lifespan=combined_lifespan)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(VirtualRoomError)
async def virtual_room_error_handler(request: Request, exc: VirtualRoomError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code.value, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.get("/")
def health() -> dict:
    return {"status": "ok", "app": settings.app_name}


app.include_router(user_router, prefix="/api/users")
app.include_router(session_router, prefix="/api/virtual-room/sessions")
app.include_router(participant_router, prefix="/api/virtual-room/participants")
