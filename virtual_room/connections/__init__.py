from virtual_room.connections.mongo import mongo_lifespan, init_mongo, close_mongo
from virtual_room.connections.redis import redis_lifespan, get_redis, init_redis, close_redis

__all__ = [
    "mongo_lifespan",
    "init_mongo",
    "close_mongo",
    "redis_lifespan",
    "get_redis",
    "init_redis",
    "close_redis",
]
