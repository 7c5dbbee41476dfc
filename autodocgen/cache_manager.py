"""Redis-based cache for generated documentation."""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from pydantic import BaseModel

from .config import CacheConfig

logger = logging.getLogger(__name__)

KEY_PREFIX = "autodocgen:doc:"


class CachedDocumentation(BaseModel):
    """Documentation entry stored in Redis."""

    provider: str
    model: str
    content: str
    created_at: str


class CacheManager:
    """Redis cache of generated documentation keyed by prompt."""

    def __init__(self, config: CacheConfig, client: Optional[redis.Redis] = None):
        self.config = config
        self.redis: Optional[redis.Redis] = client
        self._connected = client is not None

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """Connect to Redis server."""
        if not self.config.enabled:
            logger.debug("Redis caching is disabled")
            return False

        try:
            self.redis = redis.from_url(
                self._build_redis_url(),
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            await self.redis.ping()
            self._connected = True
            logger.info(f"Connected to Redis at {self.config.host}:{self.config.port}")
            return True
        except RedisError as e:
            logger.warning(f"Failed to connect to Redis, caching disabled: {e}")
            self._connected = False
            return False

    async def disconnect(self) -> None:
        if self.redis:
            await self.redis.aclose()
            self._connected = False
            logger.debug("Disconnected from Redis")

    def _build_redis_url(self) -> str:
        if self.config.password:
            return f"redis://:{self.config.password}@{self.config.host}:{self.config.port}/{self.config.db}"
        return f"redis://{self.config.host}:{self.config.port}/{self.config.db}"

    @staticmethod
    def documentation_key(provider: str, model: str, prompt: str) -> str:
        digest = hashlib.sha256(f"{provider}\n{model}\n{prompt}".encode("utf-8")).hexdigest()
        return f"{KEY_PREFIX}{digest}"

    async def get_documentation(self, provider: str, model: str, prompt: str) -> Optional[str]:
        """Cached documentation for a prompt, if any."""
        if not self._connected:
            return None

        try:
            data = await self.redis.get(self.documentation_key(provider, model, prompt))
            if data:
                return CachedDocumentation(**json.loads(data)).content
        except (RedisError, ValueError) as e:
            logger.error(f"Failed to read documentation from cache: {e}")
        return None

    async def set_documentation(self, provider: str, model: str, prompt: str, content: str) -> bool:
        """Store generated documentation."""
        if not self._connected:
            return False

        entry = CachedDocumentation(
            provider=provider,
            model=model,
            content=content,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            await self.redis.setex(
                self.documentation_key(provider, model, prompt),
                self.config.ttl,
                entry.model_dump_json(),
            )
            logger.debug(f"Stored {provider}/{model} documentation in cache")
            return True
        except RedisError as e:
            logger.error(f"Failed to store documentation in cache: {e}")
            return False

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        if not self._connected:
            return {"status": "disconnected"}

        try:
            info = await self.redis.info()
            documents = 0
            async for _ in self.redis.scan_iter(match=f"{KEY_PREFIX}*"):
                documents += 1
            return {
                "status": "connected",
                "redis_version": info.get("redis_version"),
                "used_memory": info.get("used_memory_human"),
                "cached_documents": documents,
                "config": {
                    "host": self.config.host,
                    "port": self.config.port,
                    "db": self.config.db,
                    "ttl": self.config.ttl,
                },
            }
        except RedisError as e:
            return {"status": "error", "error": str(e)}

    async def clear_cache(self) -> int:
        """Delete all cached documentation, returning the number of keys removed."""
        if not self._connected:
            return 0

        removed = 0
        try:
            async for key in self.redis.scan_iter(match=f"{KEY_PREFIX}*"):
                removed += await self.redis.delete(key)
        except RedisError as e:
            logger.error(f"Failed to clear cache: {e}")
        logger.info(f"Cleared {removed} cached documents")
        return removed


async def create_cache_manager(config: CacheConfig) -> CacheManager:
    """Create a cache manager and connect it when caching is enabled."""
    cache_manager = CacheManager(config)
    await cache_manager.connect()
    return cache_manager
