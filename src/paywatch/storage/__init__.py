"""
Storage backends for paywatch.

Pick one by name, or through the environment:
    PAYWATCH_STORAGE_BACKEND=memory  # or 'redis'
    PAYWATCH_REDIS_URL=redis://localhost:6379/0

Example:
    >>> from paywatch.storage import get_storage
    >>>
    >>> intents_db = get_storage("redis", redis_url="redis://cache:6379/2")
"""

from __future__ import annotations

import os
from typing import Any

from paywatch.core.exceptions import ConfigurationError
from paywatch.storage.base import (
    StorageBackend,
    get_storage_backend,
    list_storage_backends,
    register_storage_backend,
)
from paywatch.storage.memory import InMemoryStorage
from paywatch.storage.redis import RedisStorage


def get_storage(backend_name: str | None = None, **kwargs: Any) -> StorageBackend:
    """
    Build a registered storage backend.

    Args:
        backend_name: Registered name; PAYWATCH_STORAGE_BACKEND (default
            ``memory``) when omitted
        **kwargs: Constructor arguments of the backend, e.g. ``redis_url``

    Raises:
        ConfigurationError: If no backend is registered under that name
    """
    name = backend_name or os.environ.get("PAYWATCH_STORAGE_BACKEND", "memory")
    backend_class = get_storage_backend(name)
    if backend_class is None:
        raise ConfigurationError(
            f"Unknown storage backend: '{name}'. Available: {', '.join(list_storage_backends())}"
        )
    return backend_class(**kwargs)


__all__ = [
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    "get_storage",
    "get_storage_backend",
    "list_storage_backends",
    "register_storage_backend",
]
