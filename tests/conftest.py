from __future__ import annotations

import asyncio
from typing import Any

import pytest

from porter_realtime.invalidation import CacheKey

_CLOSED = object()


class FakeConnection:
    """In-memory connection fed by the test: frames, a clean close, or an error."""

    def __init__(self) -> None:
        self._items: asyncio.Queue[Any] = asyncio.Queue()
        self.close_calls = 0

    def push(self, frame: str | bytes) -> None:
        self._items.put_nowait(frame)

    def finish(self) -> None:
        self._items.put_nowait(_CLOSED)

    def fail(self, error: Exception) -> None:
        self._items.put_nowait(error)

    def __aiter__(self) -> FakeConnection:
        return self

    async def __anext__(self) -> str | bytes:
        item = await self._items.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        self._items.put_nowait(_CLOSED)


class FakeTransport:
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.connections: list[FakeConnection] = []
        self.fail_next = 0
        self.gate: asyncio.Event | None = None

    @property
    def attempts(self) -> int:
        return len(self.urls)

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]

    async def open(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next > 0:
            self.fail_next -= 1
            raise OSError("connection refused")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


class RecordingCache:
    def __init__(self) -> None:
        self.keys: list[CacheKey] = []

    def invalidate(self, key: CacheKey) -> None:
        self.keys.append(key)


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def cache() -> RecordingCache:
    return RecordingCache()
