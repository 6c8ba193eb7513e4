"""Cache adapters - Ephemeral token store implementations."""

from .redis_store import RedisTokenStore

__all__ = ["RedisTokenStore"]
