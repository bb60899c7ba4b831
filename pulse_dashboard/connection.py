"""Client connection manager.

Keeps one logical connection to the hub's realtime channel.

Status transitions::

    disconnected -> connecting -> connected
    connected    -> disconnected            (channel closed)
    connecting   -> error                   (open failed or timed out)
    error/disconnected -> connecting        (scheduled reconnect)

Reconnects are spaced ``reconnect_delay * attempt`` apart; after
``max_reconnect_attempts`` failures in a row ``reconnect_failed`` is emitted
once and nothing more is scheduled until ``reconnect()`` is called.

Polling is the alternative feed. It is started by the owner (see
``RealtimeDashboard``) and is stopped as soon as the channel opens.

Emitted kinds: ``connected``, ``disconnected``, ``error``,
``reconnect_failed``, ``message`` and one per message type (``metrics``,
``event``, ``alert``, ``user_count``).
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Any, AsyncIterator, Optional, Protocol

import aiohttp

from shared.constants import RealtimePaths
from shared.logging.logger import get_logger
from shared.schemas.realtime import (
    MessageParseError,
    MetricsMessage,
    WireModel,
    encode_message,
    parse_message,
)
from shared.utils.retry import linear_backoff

from .config import DashboardSettings
from .emitter import Listener, ListenerHandle, ListenerRegistry
from .errors import ConnectionFailedError
from .polling import MetricsPoller

logger = get_logger("dashboard.connection")


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class FeedMode(str, Enum):
    IDLE = "idle"
    LIVE = "live"
    POLLING = "polling"
    SYNTHETIC = "synthetic"


class Channel(Protocol):
    async def send(self, data: str) -> None: ...

    def messages(self) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...


class Transport(Protocol):
    async def open(self, url: str) -> Channel: ...

    async def close(self) -> None: ...


class AiohttpChannel:
    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self.ws = ws

    async def send(self, data: str) -> None:
        await self.ws.send_str(data)

    async def messages(self) -> AsyncIterator[str]:
        async for msg in self.ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ConnectionError(str(self.ws.exception()))

    async def close(self) -> None:
        await self.ws.close()


class AiohttpTransport:
    def __init__(self, heartbeat: float = 30.0):
        self.heartbeat = heartbeat
        self._session: Optional[aiohttp.ClientSession] = None

    async def open(self, url: str) -> AiohttpChannel:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        ws = await self._session.ws_connect(url, heartbeat=self.heartbeat)
        return AiohttpChannel(ws)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class ConnectionManager:
    def __init__(
        self,
        settings: Optional[DashboardSettings] = None,
        transport: Optional[Transport] = None,
        poller: Optional[MetricsPoller] = None,
    ):
        self.settings = settings or DashboardSettings()
        self.url = RealtimePaths.ws_url(self.settings.base_url)
        self.transport: Transport = transport or AiohttpTransport()
        self.poller = poller or MetricsPoller(self.settings)
        self.listeners = ListenerRegistry()

        self.status = ConnectionStatus.DISCONNECTED
        self.feed_mode = FeedMode.IDLE
        self.reconnect_attempts = 0
        self.next_reconnect_delay: Optional[float] = None

        self._channel: Optional[Channel] = None
        self._opening: Optional[asyncio.Task] = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._polling_task: Optional[asyncio.Task] = None
        self._stopped = False
        self._reconnect_failed_sent = False

    # Listener registry passthrough

    def on(self, kind: str, listener: Listener) -> ListenerHandle:
        return self.listeners.on(kind, listener)

    def off(self, handle: ListenerHandle) -> bool:
        return self.listeners.off(handle)

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def polling(self) -> bool:
        return self._polling_task is not None and not self._polling_task.done()

    # Channel lifecycle

    async def connect(self) -> None:
        """Open the channel; concurrent callers share one attempt.

        Raises:
            ConnectionFailedError: the channel did not open in time or the
                transport failed.
        """
        if self.is_connected:
            return
        self._stopped = False
        if self._opening is None or self._opening.done():
            self._opening = asyncio.create_task(self._open())
        await asyncio.shield(self._opening)

    async def _open(self) -> None:
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            channel = await asyncio.wait_for(
                self.transport.open(self.url),
                timeout=self.settings.connect_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self._on_open_failed(e, "timeout")
            raise ConnectionFailedError(
                f"channel did not open within {self.settings.connect_timeout_seconds}s"
            ) from e
        except Exception as e:
            self._on_open_failed(e, "transport_error")
            raise ConnectionFailedError(f"channel failed to open: {e}") from e

        if self._stopped:
            # disconnect()/close() ran while the attempt was in flight
            await channel.close()
            return

        self._channel = channel
        self.reconnect_attempts = 0
        self._reconnect_failed_sent = False
        self._cancel_reconnect()
        self.stop_polling()
        self.feed_mode = FeedMode.LIVE
        self._set_status(ConnectionStatus.CONNECTED)
        self._reader = asyncio.create_task(self._read_loop(channel))
        logger.info("realtime_connected", extra={"url": self.url})
        self.listeners.emit("connected")

    def _on_open_failed(self, exc: BaseException, reason: str) -> None:
        logger.warning(
            "realtime_connect_failed",
            extra={
                "url": self.url,
                "reason": reason,
                "attempt": self.reconnect_attempts,
                "error": str(exc),
            },
        )
        self._set_status(ConnectionStatus.ERROR)
        self.listeners.emit("error", exc)
        self._schedule_reconnect()

    async def _read_loop(self, channel: Channel) -> None:
        try:
            async for raw in channel.messages():
                self._handle_payload(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("realtime_channel_error", extra={"error": str(e)})
        if self._channel is channel:
            self._on_closed()

    def _on_closed(self) -> None:
        self._channel = None
        self._reader = None
        if self.feed_mode is FeedMode.LIVE:
            self.feed_mode = FeedMode.IDLE
        self._set_status(ConnectionStatus.DISCONNECTED)
        logger.info("realtime_disconnected", extra={"url": self.url})
        self.listeners.emit("disconnected")
        self._schedule_reconnect()

    def _handle_payload(self, raw: str) -> None:
        try:
            message = parse_message(raw)
        except MessageParseError as e:
            logger.warning("realtime_message_dropped", extra={"error": str(e)[:200]})
            return
        self.listeners.emit("message", message)
        self.listeners.emit(message.type, message.data)

    # Reconnect

    def _schedule_reconnect(self) -> None:
        if self._stopped or self.reconnect_pending:
            return
        if self.reconnect_attempts >= self.settings.max_reconnect_attempts:
            if not self._reconnect_failed_sent:
                self._reconnect_failed_sent = True
                self.next_reconnect_delay = None
                logger.error(
                    "realtime_reconnect_failed",
                    extra={"attempts": self.reconnect_attempts},
                )
                self.listeners.emit("reconnect_failed")
            return
        self.reconnect_attempts += 1
        delay = linear_backoff(
            self.settings.reconnect_delay_seconds, self.reconnect_attempts
        )
        self.next_reconnect_delay = delay
        logger.info(
            "realtime_reconnect_scheduled",
            extra={"attempt": self.reconnect_attempts, "delay": delay},
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        try:
            await self.connect()
        except ConnectionFailedError:
            # _open already scheduled the next attempt or gave up
            logger.debug("realtime_reconnect_attempt_failed")

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not _current_task():
            task.cancel()
        self.next_reconnect_delay = None

    async def reconnect(self) -> None:
        """Drop the current channel and start over with a fresh attempt count."""
        had_channel = self._channel is not None
        await self._drop_channel()
        if self.feed_mode is FeedMode.LIVE:
            self.feed_mode = FeedMode.IDLE
        self._set_status(ConnectionStatus.DISCONNECTED)
        if had_channel:
            self.listeners.emit("disconnected")
        self._cancel_reconnect()
        self.reconnect_attempts = 0
        self._reconnect_failed_sent = False
        await self.connect()

    async def disconnect(self) -> None:
        """Close the channel and stop reconnecting and polling."""
        self._stopped = True
        self._cancel_reconnect()
        self.stop_polling()
        had_channel = self._channel is not None
        await self._drop_channel()
        if self.feed_mode is FeedMode.LIVE:
            self.feed_mode = FeedMode.IDLE
        self._set_status(ConnectionStatus.DISCONNECTED)
        if had_channel:
            self.listeners.emit("disconnected")

    async def _drop_channel(self) -> None:
        channel, self._channel = self._channel, None
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
        if channel is not None:
            try:
                await channel.close()
            except Exception as e:
                logger.debug("realtime_channel_close_failed", extra={"error": str(e)})

    # Outbound

    async def send(self, data: Any) -> bool:
        """Best effort; returns False when the payload was dropped."""
        if not self.is_connected or self._channel is None:
            logger.warning("realtime_send_dropped", extra={"reason": "not_connected"})
            return False
        if isinstance(data, WireModel):
            payload = encode_message(data)
        elif isinstance(data, str):
            payload = data
        else:
            payload = json.dumps(data, default=str)
        try:
            await self._channel.send(payload)
        except Exception as e:
            logger.warning("realtime_send_failed", extra={"error": str(e)})
            return False
        return True

    # Polling fallback

    def start_polling(self) -> None:
        if self.polling or self.is_connected or self._stopped:
            return
        self.feed_mode = FeedMode.POLLING
        self._polling_task = asyncio.create_task(self._poll_loop())
        logger.info(
            "polling_started",
            extra={"interval": self.settings.polling_interval_seconds},
        )

    def stop_polling(self) -> None:
        task, self._polling_task = self._polling_task, None
        if task is None:
            return
        if task is not _current_task():
            task.cancel()
        if self.feed_mode in (FeedMode.POLLING, FeedMode.SYNTHETIC):
            self.feed_mode = FeedMode.IDLE
        logger.info("polling_stopped")

    async def poll_once(self) -> None:
        result = await self.poller.poll_once()
        if self.is_connected:
            return
        self.feed_mode = (
            FeedMode.SYNTHETIC if result.tier == "synthetic" else FeedMode.POLLING
        )
        self.listeners.emit("message", MetricsMessage(data=result.snapshot))
        self.listeners.emit("metrics", result.snapshot)
        if result.event is not None:
            self.listeners.emit("event", result.event)

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("polling_tick_failed")
            await asyncio.sleep(self.settings.polling_interval_seconds)

    # Teardown

    def close(self) -> None:
        """Synchronously stop every timer and start closing the channel."""
        self._stopped = True
        self._cancel_reconnect()
        self.stop_polling()
        if self._opening is not None and not self._opening.done():
            self._opening.cancel()
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
        channel, self._channel = self._channel, None
        if channel is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # no loop left to run the close on; aclose() is the clean release
                logger.debug(
                    "realtime_channel_close_skipped", extra={"reason": "no_running_loop"}
                )
            else:
                loop.create_task(channel.close())
        self.feed_mode = FeedMode.IDLE
        self._set_status(ConnectionStatus.DISCONNECTED)
        self.listeners.clear()

    async def aclose(self) -> None:
        """close() plus release of the transport and the poller's HTTP session."""
        channel, self._channel = self._channel, None
        self.close()
        if channel is not None:
            try:
                await channel.close()
            except Exception as e:
                logger.debug("realtime_channel_close_failed", extra={"error": str(e)})
        await self.transport.close()
        await self.poller.close()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is not self.status:
            logger.debug(
                "realtime_status_changed",
                extra={"from": self.status.value, "to": status.value},
            )
        self.status = status
