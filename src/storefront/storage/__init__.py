"""Local storage factory.

Provides build_storage() to pick an implementation:
- MemoryStorage when no path is configured
- JsonFileStorage for durable storage on disk
"""

from storefront.storage.file_adapter import JsonFileStorage
from storefront.storage.memory_adapter import MemoryStorage
from storefront.storage.port import LocalStorage, StorageError


def build_storage(path: str | None = None) -> LocalStorage:
    """Return file-backed storage for ``path``, or in-memory storage."""
    if path:
        return JsonFileStorage(path)
    return MemoryStorage()


__all__ = ["JsonFileStorage", "LocalStorage", "MemoryStorage", "StorageError", "build_storage"]
