"""
Storage contract shared by the intent store and the circuit breakers.

A backend holds JSON-ready dicts in named collections. paywatch uses two:
``payment_intents`` (one record per intent) and ``resilience`` (breaker
state and failure counters).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Record = dict[str, Any]


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Backends must hand out copies: mutating a returned record never changes
    what is stored until it is written back with ``save`` or ``update``.
    """

    @abstractmethod
    async def save(self, collection: str, key: str, data: Record) -> None:
        """Store ``data`` under ``key``, replacing any previous record."""
        ...

    @abstractmethod
    async def get(self, collection: str, key: str) -> Record | None:
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Returns False when there was nothing to delete."""
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Record | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        """
        List the records of a collection.

        Args:
            collection: Collection name
            filters: Field values every returned record must equal
            limit: Maximum records to return
            offset: Number of matching records to skip

        Returns:
            Matching records, each carrying its key under ``_key``
        """
        ...

    @abstractmethod
    async def update(self, collection: str, key: str, data: Record) -> bool:
        """
        Merge ``data`` into an existing record.

        Returns:
            False if no record is stored under ``key``; nothing is created
        """
        ...

    @abstractmethod
    async def count(self, collection: str, filters: Record | None = None) -> int:
        ...

    @abstractmethod
    async def clear(self, collection: str) -> int:
        """Drop every record of a collection and return how many there were."""
        ...

    @abstractmethod
    async def atomic_add(self, collection: str, key: str, amount: str) -> str:
        """
        Add ``amount`` (a decimal string, may be negative) to the counter at
        ``key`` in one step and return the new value as a string. A missing
        counter starts at zero.
        """
        ...

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None


def matches_filters(data: Record, filters: Record | None) -> bool:
    if not filters:
        return True
    return all(data.get(field) == expected for field, expected in filters.items())


# name -> backend class, filled in by each backend module on import
_BACKENDS: dict[str, type[StorageBackend]] = {}


def register_storage_backend(name: str, backend_class: type[StorageBackend]) -> None:
    _BACKENDS[name] = backend_class


def get_storage_backend(name: str) -> type[StorageBackend] | None:
    return _BACKENDS.get(name)


def list_storage_backends() -> list[str]:
    return sorted(_BACKENDS)
