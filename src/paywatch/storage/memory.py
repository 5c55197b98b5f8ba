"""
In-process storage, the default backend.

Everything is lost on restart, including pending intents. Fine for tests,
development and single-process deployments that accept that.
"""

from __future__ import annotations

from copy import deepcopy
from decimal import Decimal, InvalidOperation

from paywatch.storage.base import Record, StorageBackend, matches_filters, register_storage_backend


class InMemoryStorage(StorageBackend):
    """
    Dict-of-dicts storage backend.

    Records are deep-copied on the way in and out. No method awaits between
    reading and writing, so every call is atomic on a single event loop.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Record | str]] = {}

    def _records(self, collection: str) -> dict[str, Record | str]:
        return self._collections.setdefault(collection, {})

    async def save(self, collection: str, key: str, data: Record) -> None:
        self._records(collection)[key] = deepcopy(data)

    async def get(self, collection: str, key: str) -> Record | None:
        record = self._records(collection).get(key)
        if not isinstance(record, dict):
            return None
        return deepcopy(record)

    async def delete(self, collection: str, key: str) -> bool:
        return self._records(collection).pop(key, None) is not None

    async def query(
        self,
        collection: str,
        filters: Record | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        found = []
        for key, record in self._records(collection).items():
            # Counters written by atomic_add are not records
            if isinstance(record, dict) and matches_filters(record, filters):
                found.append({**deepcopy(record), "_key": key})

        found = found[offset:]
        return found if limit is None else found[:limit]

    async def update(self, collection: str, key: str, data: Record) -> bool:
        record = self._records(collection).get(key)
        if not isinstance(record, dict):
            return False
        record.update(deepcopy(data))
        return True

    async def count(self, collection: str, filters: Record | None = None) -> int:
        if filters:
            return len(await self.query(collection, filters))
        return sum(1 for record in self._records(collection).values() if isinstance(record, dict))

    async def clear(self, collection: str) -> int:
        records = self._records(collection)
        dropped = len(records)
        records.clear()
        return dropped

    async def atomic_add(self, collection: str, key: str, amount: str) -> str:
        records = self._records(collection)
        try:
            current = Decimal(str(records.get(key, "0")))
        except InvalidOperation:
            # A record was stored under this key; the counter restarts
            current = Decimal("0")
        # Kept as a string, like the value Redis returns
        records[key] = str(current + Decimal(amount))
        return records[key]


register_storage_backend("memory", InMemoryStorage)
