"""
RedisUsageStore — usage counters in Redis (or Upstash via its rediss:// URL).

Expiry is native (SET EX), increments are INCR, and the create-or-increment
primitive is a small Lua script so "+1, and set the TTL if this created the
key" happens in one round trip on the server.
"""

import logging
from typing import Any

import redis

from .base import UsageStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

_CREATE_OR_INCR_SCRIPT = """
local n = redis.call('INCR', KEYS[1])
if n == 1 or redis.call('TTL', KEYS[1]) == -1 then
  redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
return n
"""


def _safe_int(value: Any, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class RedisUsageStore(UsageStore):
    """Redis-backed usage counters."""

    name = "redis"

    def __init__(self, url: str = "", client: Any = None, timeout: float = DEFAULT_TIMEOUT):
        if client is None:
            if not url:
                raise ValueError("RedisUsageStore needs a url (storage.redis_url) or a client")
            # Connect and every command give up after `timeout` seconds.
            client = redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=timeout,
                socket_connect_timeout=timeout,
            )
        self._redis = client
        self._create_or_incr = self._redis.register_script(_CREATE_OR_INCR_SCRIPT)
        logger.info("Redis usage store initialized")

    def get(self, key: str) -> int | None:
        return _safe_int(self._redis.get(key))

    def set_with_expiry(self, key: str, value: int, ttl_seconds: int) -> None:
        self._redis.set(key, int(value), ex=int(ttl_seconds))

    def increment(self, key: str) -> int:
        return int(self._redis.incr(key))

    def create_or_increment(self, key: str, ttl_seconds: int) -> int:
        result = self._create_or_incr(keys=[key], args=[str(int(ttl_seconds))])
        return int(result)

    def ttl(self, key: str) -> int | None:
        remaining = _safe_int(self._redis.ttl(key), -2)
        # -2: no such key, -1: no expiry
        if remaining is None or remaining < 0:
            return None
        return remaining

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.RedisError as e:
            logger.warning("Redis usage store unreachable: %s", e)
            return False
