"""Timed key-value caches for the exchange-rate and KIS token state.

Entries are never evicted by age: a stale entry stays readable so callers
can fall back to it when a refresh fails. Freshness is decided by the
caller through ``CacheEntry.is_fresh``.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from stockfolio.core.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float
    expires_at: float | None = None

    def is_fresh(self, now: float) -> bool:
        return self.expires_at is None or now < self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {
                "value": self.value,
                "stored_at": self.stored_at,
                "expires_at": self.expires_at,
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> CacheEntry:
        data = json.loads(raw)
        return cls(
            value=data["value"],
            stored_at=data["stored_at"],
            expires_at=data.get("expires_at"),
        )


class TimedCache(Protocol):
    async def get(self, key: str) -> CacheEntry | None: ...

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryTimedCache:
    """Process-local cache."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            stored_at=now,
            expires_at=now + ttl if ttl is not None else None,
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisTimedCache:
    """Redis 기반 캐시 (JSON 직렬화, 여러 프로세스가 공유)"""

    def __init__(
        self,
        redis_url: str,
        prefix: str = "stockfolio:",
        clock: Clock = time.time,
    ) -> None:
        self._redis_url = redis_url
        self._prefix = prefix
        self._clock = clock
        self.redis_client: Redis | None = None

    async def _get_redis_client(self) -> Redis:
        """Redis 클라이언트 가져오기 (지연 초기화)"""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self._redis_url,
                socket_timeout=settings.redis_socket_timeout,
                socket_connect_timeout=settings.redis_socket_connect_timeout,
                decode_responses=True,
            )
        return self.redis_client

    async def get(self, key: str) -> CacheEntry | None:
        try:
            client = await self._get_redis_client()
            raw = await client.get(self._prefix + key)
        except RedisError as e:
            logger.warning("Redis cache read failed for %s: %s", key, e)
            return None
        if not raw:
            return None
        try:
            return CacheEntry.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Corrupt cache entry for %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        entry = CacheEntry(
            value=value,
            stored_at=now,
            expires_at=now + ttl if ttl is not None else None,
        )
        try:
            client = await self._get_redis_client()
            # Redis TTL은 두지 않는다: 만료된 값도 폴백용으로 남겨둠
            await client.set(self._prefix + key, entry.to_json())
        except RedisError as e:
            logger.error("Redis cache write failed for %s: %s", key, e)

    async def delete(self, key: str) -> None:
        try:
            client = await self._get_redis_client()
            await client.delete(self._prefix + key)
        except RedisError as e:
            logger.warning("Redis cache delete failed for %s: %s", key, e)

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None


def build_cache(clock: Clock = time.time) -> TimedCache:
    """설정에 따라 Redis 또는 메모리 캐시 생성"""
    if settings.redis_url:
        logger.info("Using Redis cache backend")
        return RedisTimedCache(settings.redis_url, clock=clock)
    logger.info("Using in-memory cache backend")
    return MemoryTimedCache(clock=clock)
