"""Bounded exponential backoff for remote calls.

Only ``TransientNetworkError`` is retried. Conflict, auth, server and
validation failures surface on the first occurrence. An ``AuthError`` is
reported to the identity collaborator before it propagates.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from storefront.errors import AuthError, TransientNetworkError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base: float = 0.25  # seconds
    backoff_max: float = 2.0  # cap per attempt
    jitter: float = 0.1  # +/- seconds

    def delay(self, attempt_index: int) -> float:
        """Delay before retry number ``attempt_index + 1`` (0.25, 0.5, 1.0, ... up to cap)."""
        delay = min(self.backoff_base * (2**attempt_index), self.backoff_max)
        if self.jitter:
            delay += (random.random() * 2 - 1) * self.jitter
        return max(0.0, delay)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_attempts,
            backoff_base=settings.retry_backoff,
            backoff_max=settings.retry_backoff_max,
        )


NO_RETRY = RetryPolicy(max_attempts=1)


async def call_remote(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy = NO_RETRY,
    identity=None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "remote call",
) -> T:
    """Run ``operation`` under ``policy``; return its result or raise a classified error."""
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientNetworkError as exc:
            attempt += 1
            if attempt >= policy.max_attempts:
                logger.warning(
                    "Giving up after transient failures",
                    operation=description,
                    attempts=attempt,
                    error=exc.message,
                )
                raise
            delay = policy.delay(attempt - 1)
            logger.info(
                "Retrying after transient failure",
                operation=description,
                attempt=attempt,
                delay=round(delay, 3),
                error=exc.message,
            )
            await sleep(delay)
        except AuthError as exc:
            if identity is not None:
                identity.session_expired(reason=f"{description}: {exc.message}")
            raise
