"""Ordered subscriber registry with per-handler fault isolation."""

from __future__ import annotations

from collections.abc import Callable
from itertools import count
from typing import TypeAlias

from loguru import logger

from porter_realtime.envelope import Envelope

EventHandler: TypeAlias = Callable[[Envelope], None]
Unsubscribe: TypeAlias = Callable[[], None]


class SubscriberRegistry:
    """Holds subscriber callbacks and dispatches envelopes to them in registration order."""

    def __init__(self) -> None:
        self._handlers: dict[int, EventHandler] = {}
        self._tokens = count()

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: EventHandler) -> Unsubscribe:
        """Register ``handler`` and return a callable that removes exactly this subscription."""

        token = next(self._tokens)
        self._handlers[token] = handler

        def unsubscribe() -> None:
            self._handlers.pop(token, None)

        return unsubscribe

    def dispatch(self, envelope: Envelope) -> None:
        """Invoke every handler registered when dispatch starts.

        Changes to the subscriber set made by handlers apply from the next dispatch.
        """

        for handler in list(self._handlers.values()):
            try:
                handler(envelope)
            except Exception:
                logger.exception("realtime.dispatch.handler_error kind={} handler={}", envelope.kind, _name_of(handler))


def _name_of(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__
