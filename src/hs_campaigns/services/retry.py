"""Retry logic with exponential backoff for HubSpot calls.

One policy object is shared by the membership reader and the membership
writer; each call site builds it with its own ceiling and delay cap.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: ``min(base_delay * 2 ** (n - 1), max_delay)``.

    Args:
        max_attempts: Total attempts including the first one (default 3)
        base_delay: Delay before the first retry, in seconds (default 1.0)
        max_delay: Upper bound for any single delay (default 10.0)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def delay_for(self, error_count: int) -> float:
        """Delay to wait after the ``error_count``-th consecutive failure."""
        if error_count < 1:
            return 0.0
        return min(self.base_delay * (2 ** (error_count - 1)), self.max_delay)

    async def call(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        label: Optional[str] = None,
        should_retry: Optional[Callable[[Exception], bool]] = None,
        exceptions: Tuple[Type[Exception], ...] = (Exception,),
        **kwargs: Any,
    ) -> Any:
        """Await ``func(*args, **kwargs)`` until it succeeds or attempts run out.

        Errors rejected by ``should_retry`` propagate immediately. The last
        error is re-raised once the ceiling is reached.
        """
        name = label or getattr(func, "__name__", "call")
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await func(*args, **kwargs)
            except exceptions as e:
                if should_retry is not None and not should_retry(e):
                    raise
                if attempt == attempts:
                    logger.error("%s failed after %d attempts: %s", name, attempts, e)
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                    name,
                    attempt,
                    attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)

        raise RuntimeError(f"{name} failed without exception")


def with_exponential_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
):
    """Decorator form of :class:`RetryPolicy` for coroutine functions.

    Example:
        @with_exponential_backoff(max_attempts=3)
        async def fetch():
            return await client.request("GET", "crm/v3/lists/1")
    """

    policy = RetryPolicy(max_attempts=max_attempts, base_delay=base_delay, max_delay=max_delay)

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await policy.call(func, *args, label=func.__name__, exceptions=exceptions, **kwargs)

        return wrapper

    return decorator
