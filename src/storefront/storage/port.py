"""Durable local storage port (abstract interface).

Mirrors a browser-style key/value store: string keys, string values. Values
the core writes are JSON documents; readers must treat absent or malformed
values as "no data" rather than failing.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

# Storage keys
CART_KEY = "cart"
USER_KEY = "user"
AUTH_TOKEN_KEY = "auth_token"
CART_SYNC_FAILED_KEY = "cart_sync_failed"
SHIPPING_INFO_KEY = "shipping_info"


class StorageError(Exception):
    """A storage write (or delete) could not be completed."""


class LocalStorage(ABC):
    """Abstract key/value storage interface."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the raw value stored under ``key``, or None."""
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``. Raises StorageError on failure."""
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present. Raises StorageError on failure."""
        ...

    # -------------------------------------------------------------------
    # JSON helpers
    # -------------------------------------------------------------------
    def read_json(self, key: str, default: Any = None) -> Any:
        """Decode the JSON document under ``key``; absent or malformed → ``default``."""
        try:
            raw = self.get_item(key)
        except StorageError as exc:
            logger.warning("Storage read failed", key=key, error=str(exc))
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed storage value", key=key)
            return default

    def write_json(self, key: str, value: Any) -> None:
        """Encode ``value`` as JSON and store it under ``key``."""
        self.set_item(key, json.dumps(value))
