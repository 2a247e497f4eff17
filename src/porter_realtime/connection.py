"""Lifecycle of the single websocket connection to the Porter server."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from enum import StrEnum
from typing import Any, Protocol

from blinker import Signal
from loguru import logger
from websockets.asyncio.client import connect as ws_connect

from porter_realtime.envelope import DecodeFailure, Envelope, decode_frame
from porter_realtime.errors import LoopNotRunningError
from porter_realtime.registry import EventHandler, SubscriberRegistry, Unsubscribe

DEFAULT_URL = "ws://localhost:3101/ws"
DEFAULT_RECONNECT_DELAY_SECONDS = 3.0
_FRAME_PREVIEW_CHARS = 200


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    OPEN = "open"
    RECONNECT_SCHEDULED = "reconnect_scheduled"


class Connection(Protocol):
    """An open connection: an async stream of frames that can be closed."""

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    async def close(self) -> None: ...


class Transport(Protocol):
    async def open(self, url: str) -> Connection: ...


class WebSocketTransport:
    """Transport backed by the ``websockets`` asyncio client."""

    def __init__(self, *, open_timeout: float | None = 10.0) -> None:
        self.open_timeout = open_timeout

    async def open(self, url: str) -> Connection:
        return await ws_connect(url, open_timeout=self.open_timeout)


class ConnectionManager:
    """Owns one logical connection and recovers it after failure.

    At most one connection handle and one reconnect timer exist at any time.
    Reconnection uses a fixed delay. ``disconnect()`` is final until the next
    ``connect()``.
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        registry: SubscriberRegistry | None = None,
        transport: Transport | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        decoder: Callable[[Any], Envelope | DecodeFailure] = decode_frame,
    ) -> None:
        self.url = url
        self.registry = registry if registry is not None else SubscriberRegistry()
        self.reconnect_delay = reconnect_delay
        self.status_changed = Signal("Sent with state= and previous= on every connection state transition.")
        self._transport = transport if transport is not None else WebSocketTransport()
        self._decode = decoder
        self._state = ConnectionState.DISCONNECTED
        self._connection: Connection | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        # Bumped by every connect() and disconnect(); stale attempts compare against it.
        self._generation = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    def subscribe(self, handler: EventHandler) -> Unsubscribe:
        return self.registry.subscribe(handler)

    def connect(self) -> None:
        """Start a connection attempt unless one is open or already in flight."""

        if self._state is ConnectionState.OPEN:
            return
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise LoopNotRunningError("connect() must be called from a running event loop") from exc
        self._loop = loop
        self._generation += 1
        logger.info("realtime.connect url={}", self.url)
        self._task = loop.create_task(self._run(self._generation), name=f"porter-realtime:{self.url}")

    async def disconnect(self) -> None:
        """Stop the manager: cancel the pending timer, the reader and the open connection."""

        self._generation += 1
        self._cancel_timer()
        task, self._task = self._task, None
        connection, self._connection = self._connection, None
        self._set_state(ConnectionState.DISCONNECTED)

        current = asyncio.current_task()
        if task is not None and task is not current:
            task.cancel()
        if connection is not None:
            await self._close_quietly(connection)
            logger.info("realtime.disconnect url={}", self.url)
        if task is not None and task is not current:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self, generation: int) -> None:
        try:
            connection = await self._transport.open(self.url)
        except Exception as error:
            logger.warning("realtime.connect.failed url={} error={}", self.url, error)
            self._on_closed(generation)
            return

        if generation != self._generation:
            await self._close_quietly(connection)
            return

        self._connection = connection
        self._cancel_timer()
        self._set_state(ConnectionState.OPEN)
        logger.info("realtime.connect.open url={}", self.url)

        try:
            async for frame in connection:
                if generation != self._generation:
                    break
                self._handle_frame(frame)
        except Exception as error:
            logger.warning("realtime.connection.error url={} error={}", self.url, error)
            if self._connection is connection:
                self._connection = None
                await self._close_quietly(connection)
        else:
            logger.info("realtime.connection.closed url={}", self.url)

        if self._connection is connection:
            self._connection = None
        self._on_closed(generation)

    def _handle_frame(self, frame: Any) -> None:
        result = self._decode(frame)
        if isinstance(result, DecodeFailure):
            logger.warning(
                "realtime.decode.failed reason={} frame={!r}", result.reason, str(result.raw)[:_FRAME_PREVIEW_CHARS]
            )
            return
        self.registry.dispatch(result)

    def _on_closed(self, generation: int) -> None:
        if generation != self._generation:
            return
        if self._task is asyncio.current_task():
            self._task = None
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        # No await between the check and the assignment: atomic on the event loop.
        if self._timer is not None:
            logger.debug("realtime.reconnect.already_pending url={}", self.url)
            self._set_state(ConnectionState.RECONNECT_SCHEDULED)
            return
        loop = self._loop if self._loop is not None else asyncio.get_running_loop()
        self._timer = loop.call_later(self.reconnect_delay, self._fire_reconnect)
        self._set_state(ConnectionState.RECONNECT_SCHEDULED)
        logger.info("realtime.reconnect.scheduled url={} delay={}s", self.url, self.reconnect_delay)

    def _fire_reconnect(self) -> None:
        self._timer = None
        self.connect()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        logger.debug("realtime.state url={} {} -> {}", self.url, previous, state)
        try:
            self.status_changed.send(self, state=state, previous=previous)
        except Exception:
            logger.exception("realtime.state.observer_error url={}", self.url)

    async def _close_quietly(self, connection: Connection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.opt(exception=True).warning("realtime.connection.close_failed url={}", self.url)
