"""
IntentStore - keeps payment intents in a storage backend.

Handles persistence and lookup of intents and hands out the per-intent locks
that serialize status transitions and cleanup decisions.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from paywatch.core.exceptions import IntentNotFoundError
from paywatch.core.types import IntentStatus, PaymentIntent

if TYPE_CHECKING:
    from paywatch.storage.base import StorageBackend


class IntentStore:
    """
    Store for payment intents.

    Persists intents to any StorageBackend (memory or Redis). Locks are
    process-local ``asyncio.Lock`` objects keyed by intent id.
    """

    COLLECTION = "payment_intents"

    def __init__(self, storage: StorageBackend) -> None:
        """Initialize with storage backend."""
        self._storage = storage
        self._locks: dict[str, asyncio.Lock] = {}

    def _make_key(self, intent_id: str) -> str:
        return f"intent:{intent_id}"

    def lock(self, intent_id: str) -> asyncio.Lock:
        """
        Lock guarding every read-modify-write of one intent.

        Usage:
            >>> async with store.lock(intent.id):
            ...     intent = await store.get(intent.id)
        """
        lock = self._locks.get(intent_id)
        if lock is None:
            lock = self._locks[intent_id] = asyncio.Lock()
        return lock

    async def create(self, intent: PaymentIntent) -> str:
        await self._storage.save(self.COLLECTION, self._make_key(intent.id), intent.to_dict())
        return intent.id

    async def find(self, intent_id: str) -> PaymentIntent | None:
        data = await self._storage.get(self.COLLECTION, self._make_key(intent_id))
        if not data:
            return None
        return PaymentIntent.from_dict(data)

    async def get(self, intent_id: str) -> PaymentIntent:
        """
        Get intent by ID.

        Raises:
            IntentNotFoundError: If no intent is held under this id
        """
        intent = await self.find(intent_id)
        if intent is None:
            raise IntentNotFoundError(intent_id)
        return intent

    async def update(self, intent: PaymentIntent) -> None:
        """
        Persist a modified intent.

        Raises:
            IntentNotFoundError: If the intent was removed meanwhile
        """
        updated = await self._storage.update(
            self.COLLECTION, self._make_key(intent.id), intent.to_dict()
        )
        if not updated:
            raise IntentNotFoundError(intent.id)

    async def remove(self, intent_id: str) -> bool:
        removed = await self._storage.delete(self.COLLECTION, self._make_key(intent_id))
        self._locks.pop(intent_id, None)
        return removed

    async def list_by_payer(
        self,
        payer_reference: str,
        status: IntentStatus | None = None,
    ) -> list[PaymentIntent]:
        filters: dict[str, str] = {"payer_reference": payer_reference}
        if status is not None:
            filters["status"] = status.value
        return await self._query(filters)

    async def list_all(self, status: IntentStatus | None = None) -> list[PaymentIntent]:
        return await self._query({"status": status.value} if status is not None else None)

    async def count(self, status: IntentStatus | None = None) -> int:
        filters = {"status": status.value} if status is not None else None
        return await self._storage.count(self.COLLECTION, filters)

    async def _query(self, filters: dict[str, str] | None) -> list[PaymentIntent]:
        records = await self._storage.query(self.COLLECTION, filters=filters)
        intents = [PaymentIntent.from_dict(r) for r in records]
        intents.sort(key=lambda i: i.created_at)
        return intents
