"""Retry and backoff helpers.

``retry_async`` is the exponential-with-jitter retry used while the hub
connects to its storage backends at startup. ``linear_backoff`` is the delay
schedule the dashboard client uses between reconnect attempts.
"""

import asyncio
import random
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")


def linear_backoff(base_delay: float, attempt: int, max_delay: float | None = None) -> float:
    """Delay before reconnect ``attempt`` (1-based): ``base_delay * attempt``."""
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    delay = base_delay * attempt
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.1,
    retry_on: Iterable[type[BaseException]] = (Exception,),
    on_retry: Optional[
        Callable[[int, BaseException, float], Awaitable[None] | None]
    ] = None,
) -> T:
    retry_on = tuple(retry_on)
    delay = base_delay
    for attempt in range(retries):
        try:
            return await func()
        except retry_on as exc:
            if attempt == retries - 1:
                raise
            sleep_for = min(delay, max_delay) + random.uniform(0, delay * jitter)
            if on_retry:
                result = on_retry(attempt + 1, exc, sleep_for)
                if result is not None:
                    await result
            await asyncio.sleep(sleep_for)
            delay = min(delay * 2, max_delay)
    raise RuntimeError("async retry exhausted")
