"""Best-effort local mirror of a user's ledger. Never a source of truth."""

from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache

from pydantic import BaseModel, Field, ValidationError

from eisc.core.config import get_settings
from eisc.core.logging import get_logger
from eisc.models.ledger import Transaction

log = get_logger(__name__)

KEY_PREFIX = "eisc:ledger"


def _key(user_id: str) -> str:
    return f"{KEY_PREFIX}:{user_id}"


class LedgerSnapshot(BaseModel):
    transactions: list[Transaction] = Field(default_factory=list)
    milestones: dict[str, datetime | None] = Field(default_factory=dict)  # completed keys


class LedgerCache(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> LedgerSnapshot | None:
        ...

    @abstractmethod
    async def set(self, user_id: str, snapshot: LedgerSnapshot) -> None:
        ...


class NullLedgerCache(LedgerCache):
    async def get(self, user_id: str) -> LedgerSnapshot | None:
        return None

    async def set(self, user_id: str, snapshot: LedgerSnapshot) -> None:
        return None


class MemoryLedgerCache(LedgerCache):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, user_id: str) -> LedgerSnapshot | None:
        raw = self._data.get(_key(user_id))
        return LedgerSnapshot.model_validate_json(raw) if raw else None

    async def set(self, user_id: str, snapshot: LedgerSnapshot) -> None:
        self._data[_key(user_id)] = snapshot.model_dump_json()


class RedisLedgerCache(LedgerCache):
    def __init__(self, redis, ttl_seconds: int) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def get(self, user_id: str) -> LedgerSnapshot | None:
        try:
            raw = await self.redis.get(_key(user_id))
        except Exception as e:
            log.warning("ledger_cache_read_failed", user_id=user_id, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return LedgerSnapshot.model_validate_json(raw)
        except ValidationError:
            log.warning("ledger_cache_corrupt", user_id=user_id)
            return None

    async def set(self, user_id: str, snapshot: LedgerSnapshot) -> None:
        try:
            await self.redis.set(_key(user_id), snapshot.model_dump_json(), ex=self.ttl_seconds)
        except Exception as e:
            log.warning("ledger_cache_write_failed", user_id=user_id, error=str(e))


@lru_cache
def get_ledger_cache() -> LedgerCache:
    settings = get_settings()
    if settings.cache_backend == "redis":
        import redis.asyncio as aioredis
        client = aioredis.from_url(settings.redis_url, decode_responses=True)
        return RedisLedgerCache(client, settings.cache_ttl_seconds)
    if settings.cache_backend == "none":
        return NullLedgerCache()
    return MemoryLedgerCache()
