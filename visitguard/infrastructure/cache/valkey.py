# ==============================================================================
# Valkey Cache Implementation
# ==============================================================================
"""
Valkey/Redis implementation of the Cache interface.

Provides:
- JSON key-value reads
- Batch reads (get_many)
- Pattern-based deletion

The state stores build on this class for plain reads and use the underlying
client directly for transactions.
"""

import json
import logging

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from visitguard.base.cache import Cache
from visitguard.utils.config import get_settings
from visitguard.utils.retry import VALKEY_RETRIES

logger = logging.getLogger(__name__)


def get_valkey_client(
    url: str | None = None,
    socket_timeout: int = 10,
    retries: int | None = None,
    health_check_interval: int = 30,
) -> redis.Redis:
    """
    Get a Valkey/Redis client connection.

    Configured with:
    - Socket timeouts for fast failure detection
    - Automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    Args:
        url: Valkey/Redis connection URL. If None, uses settings.
        socket_timeout: Socket timeout in seconds (default: 10)
        retries: Number of retries for transient failures (default: VALKEY_RETRIES)
        health_check_interval: Health check interval in seconds (default: 30)

    Returns:
        redis.Redis client instance
    """
    if url is None:
        url = get_settings().valkey.url

    retry_count = retries if retries is not None else VALKEY_RETRIES
    retry_strategy = Retry(ExponentialBackoff(cap=8, base=0.25), retries=retry_count)

    return redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        retry=retry_strategy,
        retry_on_error=[RedisTimeoutError, RedisConnectionError],
        health_check_interval=health_check_interval,
    )


class ValkeyCache(Cache):
    """
    Valkey/Redis implementation of the Cache interface.

    All values are stored as JSON strings and deserialized on retrieval.
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None):
        """
        Initialize Valkey cache.

        Args:
            client: Existing client to wrap. If None, a client is created.
            url: Valkey/Redis connection URL used when creating a client.
        """
        self._client = client if client is not None else get_valkey_client(url)

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client for advanced operations."""
        return self._client

    def get(self, key: str) -> dict | None:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value as dict, or None if not found
        """
        value = self._client.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Failed to decode JSON for key %s", key)
            return None

    def get_many(self, keys: list[str]) -> dict[str, dict]:
        """
        Batch get multiple keys.

        Args:
            keys: List of cache keys to fetch

        Returns:
            Dict mapping key to value (missing keys are omitted)
        """
        if not keys:
            return {}

        values = self._client.mget(keys)
        result = {}
        for key, value in zip(keys, values):
            if value is not None:
                try:
                    result[key] = json.loads(value)
                except json.JSONDecodeError:
                    logger.warning("Failed to decode JSON for key %s", key)
        return result

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Pattern to match (e.g., "visitguard:session:*")

        Returns:
            Count of keys deleted
        """
        keys = list(self._client.scan_iter(pattern))
        if keys:
            return self._client.delete(*keys)
        return 0


def check_valkey_connection(url: str | None = None) -> bool:
    """
    Check if Valkey is reachable.

    Uses a shorter timeout (5 seconds) and no retries since this is just a
    health check.

    Returns:
        True if Valkey responds to ping, False otherwise
    """
    client = get_valkey_client(url, socket_timeout=5, retries=0)
    try:
        return bool(client.ping())
    except redis.exceptions.RedisError:
        return False
    finally:
        client.close()
