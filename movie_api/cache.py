"""Redis-backed read cache for list and detail endpoints."""
import json
import logging
from typing import Any

import redis

logger = logging.getLogger(__name__)


def build_cache_key(prefix: str, *parts: Any):
    """
    Build a Redis cache key with a prefix and optional segments.

    Args:
        prefix (str): Root part of the key.
        *parts: Additional segments.

    Returns:
        str: Colon-separated cache key.
    """
    normalized = [prefix]
    for part in parts:
        normalized.append(str(part) if part is not None else "")
    return ":".join(normalized)


class ReadCache:
    """JSON cache in Redis. A Redis outage is treated as a cache miss."""

    def __init__(self, client, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def get(self, key: str):
        try:
            cached = self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if not cached:
            return None
        try:
            return json.loads(cached)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Any):
        try:
            self.client.setex(key, self.ttl_seconds, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def invalidate(self, prefix: str):
        """Delete every key starting with ``prefix``."""
        try:
            for key in self.client.scan_iter(f"{prefix}*"):
                self.client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for {prefix}: {e}")
