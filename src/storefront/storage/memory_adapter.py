"""In-memory storage for tests and sessions without a durable backing file."""

from storefront.storage.port import LocalStorage, StorageError


class MemoryStorage(LocalStorage):
    """Dictionary-backed storage that can be told to fail writes."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.fail_writes = False
        self.writes: list[str] = []

    def get_item(self, key: str) -> str | None:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError(f"Write to {key!r} rejected: storage quota exceeded")
        self.data[key] = value
        self.writes.append(key)

    def remove_item(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError(f"Delete of {key!r} rejected: storage unavailable")
        self.data.pop(key, None)
        self.writes.append(key)
