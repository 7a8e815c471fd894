"""Error taxonomy for the storefront core.

Local, field-scoped problems are protean ``ValidationError`` instances and
never reach the network. Everything that originates remotely is classified
into one of the ``RemoteError`` subclasses below before it is handed to a
caller, so raw transport exceptions never leak.
"""

from protean.exceptions import InvalidOperationError, ValidationError

__all__ = [
    "AuthError",
    "ConflictError",
    "InvalidOperationError",
    "RemoteError",
    "ServerError",
    "TransientNetworkError",
    "ValidationError",
]


class RemoteError(Exception):
    """Base class for failures reported by (or on the way to) the remote service."""

    kind = "remote"
    retryable = False
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return self.default_message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status_code={self.status_code!r})"


class TransientNetworkError(RemoteError):
    """The request did not complete (timeout, connection refused, DNS...)."""

    kind = "network"
    retryable = True
    default_message = "We could not reach the store. Check your connection and try again."


class AuthError(RemoteError):
    """The remote service rejected our credentials, or there are none."""

    kind = "auth"
    default_message = "Your session has expired. Please sign in again."


class ConflictError(RemoteError):
    """The order already has a completed payment, or a duplicate creation raced."""

    kind = "conflict"
    default_message = "This order has already been paid. Check your order history."

    @property
    def user_message(self) -> str:
        return self.message


class ServerError(RemoteError):
    """Any other non-2xx response. Retrying is left to the user."""

    kind = "server"
    default_message = "The store could not process your request. Please try again."
