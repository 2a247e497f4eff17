"""Composition root wiring the connection, router and aggregator together."""

from __future__ import annotations

from types import TracebackType

from porter_realtime.aggregator import StreamAggregator
from porter_realtime.config import RealtimeSettings
from porter_realtime.connection import ConnectionManager, Transport, WebSocketTransport
from porter_realtime.invalidation import InvalidationRouter, InvalidationRule, InvalidationTarget, default_rules
from porter_realtime.registry import EventHandler, SubscriberRegistry, Unsubscribe
from porter_realtime.streams import SessionStream, StreamFeeder


class RealtimeRuntime:
    """One explicitly owned realtime client.

    The invalidation router and the stream feeder are subscribed on
    construction, ahead of any handler added through :meth:`subscribe`, so
    those handlers observe caches and blocks already updated for each event.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        cache: InvalidationTarget,
        *,
        rules: list[InvalidationRule] | None = None,
        aggregator: StreamAggregator | None = None,
    ) -> None:
        self.connection = connection
        self.router = InvalidationRouter(default_rules() if rules is None else rules, cache)
        self.aggregator = aggregator if aggregator is not None else StreamAggregator()
        self._streams: list[SessionStream] = []
        self._unsubscribers: list[Unsubscribe] = [
            self.subscribe(self.router),
            self.subscribe(StreamFeeder(self.aggregator)),
        ]

    @classmethod
    def from_settings(
        cls,
        settings: RealtimeSettings,
        cache: InvalidationTarget,
        *,
        transport: Transport | None = None,
        rules: list[InvalidationRule] | None = None,
    ) -> RealtimeRuntime:
        if transport is None:
            transport = WebSocketTransport(open_timeout=settings.open_timeout_seconds)
        connection = ConnectionManager(
            settings.ws_url,
            registry=SubscriberRegistry(),
            transport=transport,
            reconnect_delay=settings.reconnect_delay_seconds,
        )
        return cls(connection, cache, rules=rules)

    @property
    def registry(self) -> SubscriberRegistry:
        return self.connection.registry

    def subscribe(self, handler: EventHandler) -> Unsubscribe:
        return self.connection.subscribe(handler)

    def watch_session(self, session_id: str) -> SessionStream:
        stream = SessionStream(session_id, self.aggregator)
        self._streams = [existing for existing in self._streams if not existing.closed]
        self._streams.append(stream)
        return stream

    def start(self) -> None:
        self.connection.connect()

    async def stop(self) -> None:
        """Disconnect and release every session stream opened through this runtime."""
        streams, self._streams = self._streams, []
        for stream in streams:
            stream.close()
        await self.connection.disconnect()

    async def dispose(self) -> None:
        """Stop and detach the runtime's own handlers from the registry."""
        await self.stop()
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    async def __aenter__(self) -> RealtimeRuntime:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
