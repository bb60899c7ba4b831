import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking driver call on the default thread pool.

    Keeps the broadcaster's event loop free while ClickHouse answers.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
