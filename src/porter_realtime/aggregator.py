"""Incremental assembly of streamed session output into renderable blocks."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import StrEnum


class BlockKind(StrEnum):
    TEXT = "text"
    THINKING = "thinking"
    TOOL_CALL = "tool-call"


_CONTENT_TYPES: dict[str, BlockKind] = {
    "text": BlockKind.TEXT,
    "thinking": BlockKind.THINKING,
    "tool_use": BlockKind.TOOL_CALL,
    "tool-call": BlockKind.TOOL_CALL,
    "tool_call": BlockKind.TOOL_CALL,
}


def block_kind_of(content_type: str | None) -> BlockKind:
    """Map a wire ``content_type`` to a block kind; missing or unknown values render as text."""

    if content_type is None:
        return BlockKind.TEXT
    return _CONTENT_TYPES.get(content_type, BlockKind.TEXT)


@dataclass(frozen=True)
class Block:
    """A maximal run of same-kind fragments for one session."""

    kind: BlockKind
    content: str


class StreamAggregator:
    """Per-session block lists built from streamed fragments.

    Adjacent fragments of the same kind are merged, so no two neighbouring
    blocks of a session share a kind.
    """

    def __init__(self) -> None:
        self._blocks: dict[str, list[Block]] = {}
        self._interest: Counter[str] = Counter()

    def feed(self, session_id: str, content: str, kind: BlockKind) -> None:
        blocks = self._blocks.setdefault(session_id, [])
        if blocks and blocks[-1].kind == kind:
            blocks[-1] = Block(kind=kind, content=blocks[-1].content + content)
        else:
            blocks.append(Block(kind=kind, content=content))

    def snapshot(self, session_id: str) -> tuple[Block, ...]:
        return tuple(self._blocks.get(session_id, ()))

    def reset(self, session_id: str) -> None:
        """Clear streamed blocks; durable history replaces them."""
        if session_id in self._blocks:
            self._blocks[session_id] = []

    def evict(self, session_id: str) -> None:
        self._blocks.pop(session_id, None)
        self._interest.pop(session_id, None)

    def acquire(self, session_id: str) -> None:
        """Register one consumer interested in ``session_id``."""
        self._interest[session_id] += 1

    def release(self, session_id: str) -> None:
        """Drop one consumer; the session is evicted when none remain."""
        if session_id not in self._interest:
            return
        if self._interest[session_id] <= 1:
            self.evict(session_id)
            return
        self._interest[session_id] -= 1

    def interest(self, session_id: str) -> int:
        return self._interest.get(session_id, 0)

    def sessions(self) -> list[str]:
        return list(self._blocks)
