"""
Redis token store adapter - Implements TokenStore protocol.

Counters are incremented with a registered Lua script so that the INCR and
the first EXPIRE happen atomically; servers that refuse scripting fall back
to a pipelined INCR/TTL followed by EXPIRE.

Every redis-py error is re-raised as the domain's InfrastructureUnavailable
so that dependent security checks fail closed with an infrastructure error.
"""

import logging
from typing import Final

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from src.domain.exceptions import InfrastructureUnavailable

logger = logging.getLogger(__name__)


class RedisTokenStore:
    """
    Implements TokenStore protocol via redis-py.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The client is built and closed by the hosting process.
    """

    _INCR_SCRIPT: Final[str] = """
    local count = redis.call('INCR', KEYS[1])
    if count == 1 or redis.call('TTL', KEYS[1]) < 0 then
        redis.call('EXPIRE', KEYS[1], ARGV[1])
    end
    return count
    """

    def __init__(self, client: Redis) -> None:
        self._client = client
        self._incr_script = client.register_script(self._INCR_SCRIPT)

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise self._unavailable("put", key, exc) from exc

    def get(self, key: str) -> str | None:
        try:
            value = self._client.get(key)
        except RedisError as exc:
            raise self._unavailable("get", key, exc) from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            try:
                return int(self._incr_script(keys=[key], args=[ttl_seconds]))
            except ResponseError as exc:
                if "unknown command" not in str(exc).lower():
                    raise
                return self._incr_fallback(key, ttl_seconds)
        except RedisError as exc:
            raise self._unavailable("incr", key, exc) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as exc:
            raise self._unavailable("delete", key, exc) from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as exc:
            raise self._unavailable("ping", "-", exc) from exc

    def _incr_fallback(self, key: str, ttl_seconds: int) -> int:
        """Pipelined fallback used when Lua scripting is unavailable."""
        pipe = self._client.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        if ttl < 0:
            self._client.expire(key, ttl_seconds)
        return int(count)

    def _unavailable(self, operation: str, key: str, exc: Exception) -> InfrastructureUnavailable:
        # Log the purpose tag only; subjects may be IPs or emails.
        purpose = key.split(":", 1)[0]
        logger.error("Token store %s failed for %s: %s", operation, purpose, exc)
        return InfrastructureUnavailable("Token store unavailable")
