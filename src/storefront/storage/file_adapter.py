"""JSON-file storage adapter: durable local storage across process restarts.

The whole key space lives in one JSON object. Writes go to a temporary file
that is atomically moved over the original, so a crash mid-write leaves the
previous state intact.
"""

import json
import os
import tempfile
from pathlib import Path

import structlog

from storefront.storage.port import LocalStorage, StorageError

logger = structlog.get_logger(__name__)


class JsonFileStorage(LocalStorage):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Could not read storage file", path=str(self.path), error=str(exc))
            return {}

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Storage file is not valid JSON, starting empty", path=str(self.path))
            return {}

        if not isinstance(data, dict):
            logger.warning("Storage file has unexpected shape, starting empty", path=str(self.path))
            return {}
        return {str(key): value for key, value in data.items() if isinstance(value, str)}

    def _flush(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise StorageError(f"Could not write {self.path}: {exc}") from exc

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        data = {**self._data, key: value}
        self._flush(data)
        self._data = data

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        data = {k: v for k, v in self._data.items() if k != key}
        self._flush(data)
        self._data = data
