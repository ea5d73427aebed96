import uuid

import redis
from standpos.utils.retry import redis_retry
from standpos.utils.settings import REDIS_URL, ORDER_LOCK_TTL_SECONDS
from standpos.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare and delete, atomic
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#the script runs as one uninterruptible operation, nobody can sneak in between GET and DEL
#so a lock that expired and was taken by someone else is never deleted by us


class LockService:
    """
    -per-order mutation lock (two rapid clicks on the same order)
    -release only by the holder, via the token
    -TTL so a crashed request never blocks an order forever
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None, ttl: int = ORDER_LOCK_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(order_id: str) -> str:
        return f"order:{order_id}:lock"

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    @redis_retry()
    def acquire_order_lock(self, order_id: str, token: str, ttl: int | None = None) -> bool:
        key = self._key(order_id)
        logger.info(f"Acquire lock {key}")
        #SET order:15:lock "<token>" NX EX 10
        return bool(self.redis.set(
            name=key,
            value=token,
            nx=True,  #only when nobody holds it
            ex=ttl or self.ttl,
        ))

    @redis_retry()
    def release_order_lock(self, order_id: str, token: str) -> bool:
        key = self._key(order_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
