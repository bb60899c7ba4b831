"""In-process stand-ins for the realtime transport and the metrics poller."""

import asyncio

import aiohttp

from pulse_dashboard.polling import PollResult
from shared.schemas.realtime import MetricsSnapshot


class FakeChannel:
    def __init__(self):
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(data)

    def push(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def hang_up(self) -> None:
        self._inbox.put_nowait(None)

    async def messages(self):
        while True:
            raw = await self._inbox.get()
            if raw is None:
                return
            yield raw

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)


class FakeTransport:
    """Hands out FakeChannels; ``fail`` makes every open raise."""

    def __init__(self, fail: bool = False, hold: bool = False):
        self.fail = fail
        self.opens = 0
        self.channels: list[FakeChannel] = []
        self.closed = False
        self.gate = asyncio.Event()
        if not hold:
            self.gate.set()

    async def open(self, url: str) -> FakeChannel:
        self.opens += 1
        await self.gate.wait()
        if self.fail:
            raise ConnectionRefusedError("hub unreachable")
        channel = FakeChannel()
        self.channels.append(channel)
        return channel

    async def close(self) -> None:
        self.closed = True


class FakePoller:
    def __init__(self, snapshot=None, event=None, tier="polling"):
        self.result = PollResult(
            snapshot or MetricsSnapshot(active_users=7, source="polling"), event, tier
        )
        self.polls = 0
        self.closed = False

    async def poll_once(self) -> PollResult:
        self.polls += 1
        return self.result

    async def close(self) -> None:
        self.closed = True


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                request_info=None, history=(), status=self.status
            )

    async def json(self):
        return self.body


class FakeSession:
    """Minimal aiohttp.ClientSession stand-in for the metrics poller."""

    def __init__(self, body=None, status=200, error=None):
        self.body = body
        self.status = status
        self.error = error
        self.closed = False
        self.urls = []

    def get(self, url):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.body, self.status)

    async def close(self):
        self.closed = True
