"""Redis Client Wrapper for the Loan Cache Layer.

Unlike a best-effort wrapper, every operation here lets redis errors
propagate: the caching repository decides how a failure is absorbed.
"""

import json
import logging
from typing import Any, Optional

import redis

from config import RedisConfig, get_redis_config

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[redis.Redis] = None):
        self._config = config or get_redis_config()
        self._pool = None
        if client is None:
            self._pool = redis.ConnectionPool(
                host=self._config.host,
                port=self._config.port,
                db=self._config.db,
                password=self._config.password,
                socket_timeout=self._config.socket_timeout,
                socket_connect_timeout=self._config.socket_connect_timeout,
                retry_on_timeout=False,
                decode_responses=True,
            )
            client = redis.Redis(connection_pool=self._pool)
        self._client = client

    @property
    def client(self) -> redis.Redis:
        return self._client

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if ttl is not None:
            return bool(self._client.setex(key, ttl, value))
        return bool(self._client.set(key, value))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return self._client.delete(*keys)

    def ttl(self, key: str) -> int:
        return self._client.ttl(key)

    def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded value or None when the key is absent.

        A value that is not valid JSON raises ValueError.
        """
        value = self.get(key)
        if value is None:
            return None
        return json.loads(value)

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return self.set(key, json.dumps(value, default=str), ttl)

    def close(self):
        if self._pool:
            self._pool.disconnect()


_client_instance = None


def get_redis_client() -> RedisClient:
    """Get the shared RedisClient (one connection pool per process)."""
    global _client_instance
    if _client_instance is None:
        _client_instance = RedisClient()
    return _client_instance
