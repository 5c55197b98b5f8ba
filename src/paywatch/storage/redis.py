"""
Redis storage backend.

For deployments that must keep pending intents across restarts, or share
intents and breaker state between several processes.
"""

from __future__ import annotations

import json
import os

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from paywatch.storage.base import Record, StorageBackend, matches_filters, register_storage_backend


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Each record is a JSON string at ``{prefix}:{collection}:{key}``; the set
    at ``{prefix}:{collection}:_index`` lists the keys of a collection so it
    can be enumerated without SCAN.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "paywatch",
        client: aioredis.Redis | None = None,
    ) -> None:
        """
        Args:
            redis_url: Connection URL (or PAYWATCH_REDIS_URL, or localhost)
            prefix: Prefix of every key written
            client: Ready-made client; the URL is ignored when given
        """
        self._redis_url = redis_url or os.environ.get(
            "PAYWATCH_REDIS_URL", "redis://localhost:6379/0"
        )
        self._prefix = prefix
        self._client = client

    def _redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _key(self, collection: str, key: str) -> str:
        return f"{self._prefix}:{collection}:{key}"

    def _index(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:_index"

    @staticmethod
    def _load(raw: str) -> Record | None:
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            return None
        # Counters written by atomic_add decode to plain numbers
        return record if isinstance(record, dict) else None

    async def save(self, collection: str, key: str, data: Record) -> None:
        redis = self._redis()
        await redis.set(self._key(collection, key), json.dumps(data))
        await redis.sadd(self._index(collection), key)

    async def get(self, collection: str, key: str) -> Record | None:
        raw = await self._redis().get(self._key(collection, key))
        return None if raw is None else self._load(raw)

    async def delete(self, collection: str, key: str) -> bool:
        redis = self._redis()
        deleted = await redis.delete(self._key(collection, key))
        await redis.srem(self._index(collection), key)
        return deleted > 0

    async def query(
        self,
        collection: str,
        filters: Record | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        redis = self._redis()
        keys = sorted(await redis.smembers(self._index(collection)))
        if not keys:
            return []

        found = []
        raws = await redis.mget([self._key(collection, k) for k in keys])
        for key, raw in zip(keys, raws):
            # raw is None when the index outlived the record
            record = self._load(raw) if raw is not None else None
            if record is not None and matches_filters(record, filters):
                record["_key"] = key
                found.append(record)

        found = found[offset:]
        return found if limit is None else found[:limit]

    async def update(self, collection: str, key: str, data: Record) -> bool:
        record = await self.get(collection, key)
        if record is None:
            return False
        record.update(data)
        await self.save(collection, key, record)
        return True

    async def count(self, collection: str, filters: Record | None = None) -> int:
        # The index also lists atomic_add counters, so records are loaded
        return len(await self.query(collection, filters))

    async def clear(self, collection: str) -> int:
        redis = self._redis()
        keys = await redis.smembers(self._index(collection))
        for key in keys:
            await redis.delete(self._key(collection, key))
        await redis.delete(self._index(collection))
        return len(keys)

    async def atomic_add(self, collection: str, key: str, amount: str) -> str:
        redis = self._redis()
        total = await redis.incrbyfloat(self._key(collection, key), float(amount))
        await redis.sadd(self._index(collection), key)
        return str(total)

    async def health_check(self) -> bool:
        try:
            await self._redis().ping()
        except (RedisError, OSError):
            return False
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


register_storage_backend("redis", RedisStorage)
