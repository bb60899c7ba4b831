import asyncio
import time
from typing import Callable

import pytest


async def wait_until(
    condition: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005
) -> None:
    """Yield to the loop until ``condition()`` holds, failing after ``timeout``."""
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def until():
    return wait_until
