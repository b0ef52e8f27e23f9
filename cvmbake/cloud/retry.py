"""Bounded retry with exponential backoff for single Tencent Cloud calls.

Only ``TransientError`` is retried. Everything else, including
``ResourceInsufficientError``, is raised on the first occurrence so the
caller can decide what it means.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from cvmbake.cloud.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff curve.

    Delay before retry *n* (0-based) is ``min(base_delay * multiplier**n, max_delay)``.
    """

    max_attempts: int = 10
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 5.0

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (self.multiplier**attempt), self.max_delay)


DEFAULT_POLICY = RetryPolicy()


async def retry(op: Callable[[], Awaitable[T]], policy: RetryPolicy | None = None) -> T:
    """Await ``op()`` until it succeeds, fails fatally, or the budget runs out.

    Args:
        op: zero-argument callable returning a fresh awaitable per attempt.
        policy: attempt budget and backoff; defaults to ``DEFAULT_POLICY``.

    Returns:
        Whatever ``op()`` returned on the successful attempt.

    Raises:
        The last error unchanged once the budget is exhausted, any
        non-transient error immediately, or ``asyncio.CancelledError`` if the
        surrounding task is cancelled during a call or a backoff sleep.
    """
    policy = policy or DEFAULT_POLICY
    for attempt in range(policy.max_attempts):
        try:
            return await op()
        except TransientError as e:
            if attempt >= policy.max_attempts - 1:
                raise
            delay = policy.delay(attempt)
            logger.debug(f"Retry {attempt + 1}/{policy.max_attempts} after {e.code}: {e.message}. Waiting {delay:.1f}s...")
            await asyncio.sleep(delay)
    raise ValueError("RetryPolicy.max_attempts must be at least 1")
