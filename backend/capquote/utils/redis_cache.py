import logging
import random
from typing import Any, Optional

import redis

from capquote.core.config import settings
from .json import dumps, loads

_redis_client: Optional[redis.Redis] = None

QUOTE_KEY_PREFIX = "quote"


class _NullRedis:
    """No-op Redis client used when Redis is disabled or unavailable.

    Mirrors the small surface the quote cache uses so callers never need a
    separate "is Redis configured" branch.
    """

    def get(self, key: str):
        return None

    def setex(self, key: str, expire: int, value: str):
        return None

    def scan_iter(self, pattern: str):
        return iter(())

    def delete(self, key: str):
        return 0

    def close(self):
        return None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = (settings.REDIS_URL or "").strip()
        if not url or url.lower() in {"none", "disabled", "false", "0"}:
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        try:
            _redis_client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=0.5,
                socket_timeout=0.5,
            )
        except (ValueError, redis.exceptions.RedisError) as exc:
            logging.warning("Invalid REDIS_URL, quote cache disabled: %s", exc)
            _redis_client = _NullRedis()  # type: ignore[assignment]
    return _redis_client


def _apply_jitter(expire: int) -> int:
    """Return a TTL with a small random jitter to prevent cache stampedes."""
    return expire + random.randint(0, max(1, expire // 10))


def _quote_key(content_hash: str) -> str:
    return f"{QUOTE_KEY_PREFIX}:{content_hash}"


def get_cached_quote(content_hash: str) -> Any | None:
    """Return the cached quote payload for ``content_hash`` if present."""
    client = get_redis_client()
    key = _quote_key(content_hash)
    try:
        data = client.get(key)
    except redis.exceptions.RedisError as exc:
        logging.warning("Redis unavailable: %s", exc)
        return None
    if not data:
        return None
    try:
        return loads(data)
    except ValueError as exc:
        # Treat malformed payloads as cache misses
        logging.warning("Could not decode quote cache for key %s: %s", key, exc)
        return None


def cache_quote(content_hash: str, data: Any, expire: int = 300) -> None:
    """Store a serialized quote payload under its content hash."""
    client = get_redis_client()
    try:
        client.setex(_quote_key(content_hash), _apply_jitter(expire), dumps(data))
    except redis.exceptions.RedisError as exc:
        logging.warning("Could not cache quote: %s", exc)


def invalidate_quote_cache() -> int:
    """Remove all cached quotes; returns the number of keys deleted."""
    client = get_redis_client()
    removed = 0
    try:
        for key in client.scan_iter(f"{QUOTE_KEY_PREFIX}:*"):
            removed += int(client.delete(key) or 0)
    except redis.exceptions.RedisError as exc:
        logging.warning("Could not clear quote cache: %s", exc)
    return removed


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logging.warning("Error closing Redis client: %s", exc)
        finally:
            _redis_client = None
