"""
Redis-backed container IP store.

The orchestrator persists its container-id -> IP mapping in Redis so the
mapping survives orchestrator restarts. The gateway only reads it, as the
second tier after the in-memory ContainerRegistry.

Key layout: <container_ip_key_prefix><container_id> -> "10.0.0.12"
"""

from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config import RedisConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()


class RedisIPStore:
    """
    Read access to the persisted container IP mapping.

    Usage:
        store = RedisIPStore.from_config(settings.redis)
        ip = await store.get_container_ip("c0ffee")
        await store.close()
    """

    def __init__(self, client: "redis.Redis", key_prefix: str):
        self._client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_config(cls, config: RedisConfig) -> "RedisIPStore":
        client = redis.Redis.from_url(
            config.redis_url,
            decode_responses=True,
            socket_connect_timeout=config.socket_connect_timeout_seconds,
            socket_timeout=config.socket_timeout_seconds,
        )
        logger.info("RedisIPStore initialized", key_prefix=config.container_ip_key_prefix)
        return cls(client, config.container_ip_key_prefix)

    def key_for(self, container_id: str) -> str:
        return f"{self.key_prefix}{container_id}"

    async def get_container_ip(self, container_id: str) -> Optional[str]:
        """
        Look up a container's IP.

        Returns:
            The IP, or None on a missing key or any Redis failure
        """
        trace_id = current_trace_id()
        try:
            value = await self._client.get(self.key_for(container_id))
        except RedisError as e:
            logger.warning(
                "Redis lookup failed",
                container_id=container_id,
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id,
            )
            return None

        if isinstance(value, bytes):
            value = value.decode("utf-8")

        if not value:
            logger.info("Container IP not found in Redis", container_id=container_id, trace_id=trace_id)
            return None

        return value

    async def set_container_ip(self, container_id: str, ip: str) -> None:
        """Write a mapping; used by the orchestrator integration and tests."""
        await self._client.set(self.key_for(container_id), ip)

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self._client.ping()
        except RedisError as e:
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy"}

    async def close(self) -> None:
        await self._client.aclose()
