from __future__ import annotations
from fastapi import Depends, HTTPException, Request

from virtual_room.connections.redis import get_redis
from virtual_room.services.auth import get_current_user
from virtual_room.models.user import User


def limit_route(seconds: int):
    """FastAPI dependency blocking a user from hitting the same path again within `seconds`.

    The window lives in Redis as a key with a TTL, so it holds across workers.
    """

    def _dependency(request: Request, current_user: User = Depends(get_current_user)) -> None:
        client = get_redis()
        key = f"vr:rl:{current_user.id}:{request.method}:{request.url.path}"

        # SET NX EX: only the first call in the window creates the key
        if not client.set(name=key, value="1", ex=seconds, nx=True):
            ttl = client.ttl(key)
            raise HTTPException(status_code=429, detail=f"Rate limited. Try again in {max(ttl, 1)}s")

    return _dependency
