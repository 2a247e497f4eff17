from __future__ import annotations

import random
from itertools import groupby

import pytest

from porter_realtime.aggregator import Block, BlockKind, StreamAggregator, block_kind_of

KINDS = list(BlockKind)


def _random_chunks(seed: int) -> list[tuple[str, BlockKind]]:
    rng = random.Random(seed)
    length = rng.randint(0, 40)
    # A narrow kind distribution produces long same-kind runs as well as alternations.
    weights = [rng.random() + 0.05 for _ in KINDS]
    return [
        ("".join(rng.choice("abc xyz\n") for _ in range(rng.randint(0, 6))), rng.choices(KINDS, weights)[0])
        for _ in range(length)
    ]


def test_same_kind_chunks_merge_into_one_block() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "Hello ", BlockKind.TEXT)
    aggregator.feed("s1", "world", BlockKind.TEXT)

    assert aggregator.snapshot("s1") == (Block(kind=BlockKind.TEXT, content="Hello world"),)


def test_kind_changes_start_new_blocks() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "A", BlockKind.TEXT)
    aggregator.feed("s1", "B", BlockKind.THINKING)
    aggregator.feed("s1", "C", BlockKind.TEXT)

    assert [block.kind for block in aggregator.snapshot("s1")] == [
        BlockKind.TEXT,
        BlockKind.THINKING,
        BlockKind.TEXT,
    ]
    assert [block.content for block in aggregator.snapshot("s1")] == ["A", "B", "C"]


@pytest.mark.parametrize("seed", range(50))
def test_blocks_match_maximal_runs(seed: int) -> None:
    chunks = _random_chunks(seed)
    aggregator = StreamAggregator()
    for content, kind in chunks:
        aggregator.feed("s1", content, kind)

    runs = [(kind, "".join(content for content, _ in group)) for kind, group in groupby(chunks, key=lambda c: c[1])]
    blocks = aggregator.snapshot("s1")

    assert [(block.kind, block.content) for block in blocks] == runs
    assert all(left.kind != right.kind for left, right in zip(blocks, blocks[1:], strict=False))


@pytest.mark.parametrize("seed", range(20))
def test_reset_always_empties_snapshot(seed: int) -> None:
    aggregator = StreamAggregator()
    for content, kind in _random_chunks(seed):
        aggregator.feed("s1", content, kind)

    aggregator.reset("s1")
    assert aggregator.snapshot("s1") == ()
    aggregator.reset("s1")
    assert aggregator.snapshot("s1") == ()


def test_snapshot_is_detached_from_later_feeds() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "a", BlockKind.TEXT)
    before = aggregator.snapshot("s1")

    aggregator.feed("s1", "b", BlockKind.TEXT)

    assert before == (Block(kind=BlockKind.TEXT, content="a"),)
    assert aggregator.snapshot("s1") == (Block(kind=BlockKind.TEXT, content="ab"),)


def test_sessions_are_independent() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "one", BlockKind.TEXT)
    aggregator.feed("s2", "two", BlockKind.TEXT)
    aggregator.feed("s1", "tool", BlockKind.TOOL_CALL)
    aggregator.reset("s2")

    assert len(aggregator.snapshot("s1")) == 2
    assert aggregator.snapshot("s2") == ()
    assert aggregator.snapshot("unknown") == ()


def test_feed_after_reset_starts_fresh_run() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "old", BlockKind.TEXT)
    aggregator.reset("s1")
    aggregator.feed("s1", "new", BlockKind.TEXT)

    assert aggregator.snapshot("s1") == (Block(kind=BlockKind.TEXT, content="new"),)


def test_evict_drops_session_state() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "x", BlockKind.THINKING)
    aggregator.acquire("s1")

    aggregator.evict("s1")
    aggregator.evict("s1")

    assert aggregator.sessions() == []
    assert aggregator.interest("s1") == 0


def test_last_release_evicts() -> None:
    aggregator = StreamAggregator()
    aggregator.acquire("s1")
    aggregator.acquire("s1")
    aggregator.feed("s1", "x", BlockKind.TEXT)

    aggregator.release("s1")
    assert aggregator.sessions() == ["s1"]
    assert aggregator.interest("s1") == 1

    aggregator.release("s1")
    assert aggregator.sessions() == []
    assert aggregator.interest("s1") == 0


def test_release_without_acquire_keeps_blocks() -> None:
    aggregator = StreamAggregator()
    aggregator.feed("s1", "x", BlockKind.TEXT)

    aggregator.release("s1")

    assert aggregator.snapshot("s1") == (Block(kind=BlockKind.TEXT, content="x"),)
    assert aggregator.interest("s1") == 0


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        (None, BlockKind.TEXT),
        ("text", BlockKind.TEXT),
        ("thinking", BlockKind.THINKING),
        ("tool_use", BlockKind.TOOL_CALL),
        ("tool-call", BlockKind.TOOL_CALL),
        ("tool_call", BlockKind.TOOL_CALL),
        ("image", BlockKind.TEXT),
    ],
)
def test_block_kind_of_wire_content_types(content_type: str | None, expected: BlockKind) -> None:
    assert block_kind_of(content_type) is expected
