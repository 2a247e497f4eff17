"""Terminal rendering for the watch command."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from porter_realtime.aggregator import Block, BlockKind
from porter_realtime.connection import ConnectionState
from porter_realtime.envelope import DecodeFailure, Envelope
from porter_realtime.invalidation import CacheKey

_STATE_STYLES = {
    ConnectionState.OPEN: "green",
    ConnectionState.DISCONNECTED: "red",
    ConnectionState.RECONNECT_SCHEDULED: "yellow",
}
_BLOCK_STYLES = {
    BlockKind.TEXT: "white",
    BlockKind.THINKING: "magenta",
    BlockKind.TOOL_CALL: "cyan",
}


def format_key(key: CacheKey) -> str:
    if isinstance(key, tuple):
        return "/".join(key)
    return key


class Renderer:
    """Rich console output for connection, event and block updates."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console if console is not None else Console()

    def state(self, state: ConnectionState, url: str) -> None:
        style = _STATE_STYLES.get(state, "white")
        self.console.print(f"[{style}]{state.value}[/{style}] [dim]{escape(url)}[/dim]")

    def event(self, envelope: Envelope) -> None:
        self.console.print(f"[bold]event[/bold] {escape(envelope.kind)}")

    def invalidated(self, key: CacheKey) -> None:
        self.console.print(f"  [yellow]invalidate[/yellow] {escape(format_key(key))}")

    def blocks(self, session_id: str, blocks: tuple[Block, ...]) -> None:
        if not blocks:
            self.console.print(f"[dim]session {escape(session_id)}: no streamed blocks[/dim]")
            return
        for index, block in enumerate(blocks):
            style = _BLOCK_STYLES[block.kind]
            self.console.print(
                Panel(
                    escape(block.content),
                    title=f"{escape(session_id)} #{index} {block.kind.value}",
                    border_style=style,
                )
            )

    def envelope(self, envelope: Envelope) -> None:
        self.console.print(f"[bold]kind[/bold]    {escape(envelope.kind)}")
        self.console.print(f"[bold]payload[/bold] {escape(_dump(envelope.payload))}")

    def failure(self, failure: DecodeFailure) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(failure.reason)}")


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
