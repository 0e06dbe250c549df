# zahnflow/services/redis_service.py
"""
Optional Redis connection shared by the credential and session stores.

``Settings.REDIS_URL`` is the only source of the URL. Without a URL, or
when the server does not answer the initial ping, the service stays
disconnected and the app runs on the in-memory stores.

Command errors after startup are not swallowed here; the stores let them
propagate so the request boundary reports them as internal errors.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from zahnflow.core.config import Settings
from zahnflow.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


@dataclass
class RedisConfig:
    url: Optional[str] = None
    key_prefix: str = "zahnflow"
    socket_timeout: float = 5.0
    max_connections: int = 10
    health_check_interval: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisConfig":
        return cls(url=settings.REDIS_URL, key_prefix=settings.REDIS_KEY_PREFIX)


class RedisService:

    def __init__(self, config: RedisConfig):
        self.config = config
        self._client: Optional[redis.Redis] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Connect once; repeated calls are no-ops."""
        if self._initialized:
            return

        if not self.config.url:
            logger.warning("⚠️ No REDIS_URL set - sessions are kept in process memory only")
            self._initialized = True
            return

        client = redis.from_url(
            self.config.url,
            decode_responses=True,
            socket_timeout=self.config.socket_timeout,
            max_connections=self.config.max_connections,
            health_check_interval=self.config.health_check_interval,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"❌ Redis not reachable: {e}")
            logger.warning("⚠️ Falling back to in-memory stores")
            await client.aclose()
        else:
            self._client = client
            logger.info("✅ Redis connection successful")

        self._initialized = True

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise ServiceError(
                "Redis is not connected",
                service_name="RedisService",
                operation="client",
            )
        return self._client

    def key(self, *parts: str) -> str:
        """Namespaced key, e.g. key("session", id) -> zahnflow:session:<id>"""
        return ":".join((self.config.key_prefix,) + parts)

    async def health_check(self) -> Dict[str, Any]:
        if not self.config.url:
            return {"healthy": True, "status": "disabled"}

        if self._client is None:
            return {"healthy": False, "status": "not_connected"}

        try:
            await self._client.ping()
            info = await self._client.info()
        except (RedisError, OSError) as e:
            return {"healthy": False, "status": "error", "details": {"error": str(e)}}

        return {
            "healthy": True,
            "status": "connected",
            "details": {
                "redis_version": info.get("redis_version", "unknown"),
                "connected_clients": info.get("connected_clients", 0),
            },
        }

    async def shutdown(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"Error closing Redis client: {e}")
            logger.info("🛑 Redis connection closed")
        self._client = None
        self._initialized = False
