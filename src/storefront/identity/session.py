"""Identity collaborator: the authenticated-identity signal the core consumes.

The core never manages sign-in itself. It reads one injected ``Identity``
(authenticated flag + user record) and raises ``session_expired`` when the
remote service rejects our credentials; the collaborator decides what to do
about it (typically redirecting to sign-in).

``StoredSession`` is the storage-backed implementation: the login flow calls
``sign_in`` / ``sign_out`` and every reader goes through this object, so there
is exactly one notion of "authenticated".
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from storefront.storage.port import AUTH_TOKEN_KEY, USER_KEY, LocalStorage, StorageError

logger = structlog.get_logger(__name__)


class IdentityEvent(Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    SESSION_EXPIRED = "session_expired"


IdentityListener = Callable[[IdentityEvent, "Identity"], None]


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "UserRecord | None":
        """Parse a stored/remote user record; anything unusable → None."""
        if not isinstance(data, dict):
            return None
        user_id = data.get("id")
        if user_id is None or str(user_id).strip() == "":
            return None
        return cls(
            id=str(user_id),
            email=str(data.get("email") or ""),
            first_name=str(data.get("first_name") or data.get("firstName") or ""),
            last_name=str(data.get("last_name") or data.get("lastName") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }


class Identity(ABC):
    """Read-only view of who is signed in."""

    def __init__(self) -> None:
        self._listeners: list[IdentityListener] = []

    @property
    @abstractmethod
    def current_user(self) -> UserRecord | None: ...

    @property
    @abstractmethod
    def token(self) -> str | None: ...

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.current_user is not None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register ``listener`` for identity events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: IdentityEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self)

    def session_expired(self, reason: str = "") -> None:
        """Signal that the remote service rejected our credentials."""
        logger.warning("Session expired", reason=reason)
        self._emit(IdentityEvent.SESSION_EXPIRED)


class StoredSession(Identity):
    """Identity backed by the ``user`` and ``auth_token`` storage keys."""

    def __init__(self, storage: LocalStorage) -> None:
        super().__init__()
        self.storage = storage

    @property
    def current_user(self) -> UserRecord | None:
        return UserRecord.from_dict(self.storage.read_json(USER_KEY))

    @property
    def token(self) -> str | None:
        try:
            token = self.storage.get_item(AUTH_TOKEN_KEY)
        except StorageError:
            return None
        return token or None

    # -------------------------------------------------------------------
    # Lifecycle hooks for the external login flow
    # -------------------------------------------------------------------
    def sign_in(self, user: UserRecord, token: str) -> None:
        self.storage.write_json(USER_KEY, user.to_dict())
        self.storage.set_item(AUTH_TOKEN_KEY, token)
        logger.info("Signed in", user_id=user.id)
        self._emit(IdentityEvent.SIGNED_IN)

    def sign_out(self) -> None:
        self.storage.remove_item(USER_KEY)
        self.storage.remove_item(AUTH_TOKEN_KEY)
        logger.info("Signed out")
        self._emit(IdentityEvent.SIGNED_OUT)
