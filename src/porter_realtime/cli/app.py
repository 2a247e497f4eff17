"""Command line entry points for porter-realtime."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Any

import typer
from pydantic import ValidationError

from porter_realtime.cli.render import Renderer
from porter_realtime.config import RealtimeSettings, get_settings
from porter_realtime.connection import ConnectionManager, ConnectionState, Transport
from porter_realtime.envelope import DecodeFailure, Envelope, decode_frame
from porter_realtime.errors import ConfigurationError
from porter_realtime.invalidation import CacheKey, InvalidationRouter, default_rules
from porter_realtime.logging_utils import configure_logging
from porter_realtime.payload import session_id_of
from porter_realtime.runtime import RealtimeRuntime

app = typer.Typer(
    name="porter-realtime",
    help="Realtime event client for the Porter server.",
    add_completion=False,
)


class ConsoleCache:
    """Invalidation target that reports keys instead of refreshing a cache."""

    def __init__(self, renderer: Renderer) -> None:
        self._renderer = renderer
        self.keys: list[CacheKey] = []

    def invalidate(self, key: CacheKey) -> None:
        self.keys.append(key)
        self._renderer.invalidated(key)


def _load_settings(renderer: Renderer, **overrides: Any) -> RealtimeSettings:
    try:
        return get_settings(**overrides)
    except (ConfigurationError, ValidationError) as error:
        renderer.console.print(f"[bold red]Error:[/bold red] {error}")
        raise typer.Exit(1) from error


def _decode_or_exit(renderer: Renderer, frame: str) -> Envelope:
    result = decode_frame(frame)
    if isinstance(result, DecodeFailure):
        renderer.failure(result)
        raise typer.Exit(1)
    return result


@app.command()
def watch(
    url: str | None = typer.Option(None, "--url", help="Websocket endpoint, overrides PORTER_WS_URL"),
    sessions: list[str] = typer.Option([], "--session", "-s", help="Agent session id to stream"),  # noqa: B008
    delay: float | None = typer.Option(None, "--delay", help="Reconnect delay in seconds"),
) -> None:
    """Stay connected and print events, invalidations and streamed blocks."""

    renderer = Renderer()
    settings = _load_settings(renderer, ws_url=url, reconnect_delay_seconds=delay)
    configure_logging(level=settings.log_level, profile=settings.log_format)
    with suppress(KeyboardInterrupt):
        asyncio.run(_watch(settings, sessions, renderer))


async def _watch(
    settings: RealtimeSettings,
    session_ids: list[str],
    renderer: Renderer,
    *,
    transport: Transport | None = None,
) -> None:
    runtime = RealtimeRuntime.from_settings(settings, ConsoleCache(renderer), transport=transport)

    def on_state(sender: ConnectionManager, *, state: ConnectionState, previous: ConnectionState) -> None:
        renderer.state(state, sender.url)

    runtime.connection.status_changed.connect(on_state, weak=False)
    runtime.subscribe(renderer.event)
    streams = {session_id: runtime.watch_session(session_id) for session_id in session_ids}

    def on_session_event(envelope: Envelope) -> None:
        stream = streams.get(session_id_of(envelope.payload) or "")
        if stream is not None:
            renderer.blocks(stream.session_id, stream.blocks)

    runtime.subscribe(on_session_event)
    try:
        async with runtime:
            await asyncio.Event().wait()
    finally:
        runtime.connection.status_changed.disconnect(on_state)


@app.command()
def decode(frame: str = typer.Argument(..., help="Raw frame text")) -> None:
    """Decode one frame and print its kind and payload."""

    renderer = Renderer()
    renderer.envelope(_decode_or_exit(renderer, frame))


@app.command()
def keys(frame: str = typer.Argument(..., help="Raw frame text")) -> None:
    """Print the cache keys the default rule table derives from one frame."""

    renderer = Renderer()
    envelope = _decode_or_exit(renderer, frame)
    cache = ConsoleCache(renderer)
    InvalidationRouter(default_rules(), cache)(envelope)
    if not cache.keys:
        renderer.console.print(f"[dim]no keys for {envelope.kind}[/dim]")
