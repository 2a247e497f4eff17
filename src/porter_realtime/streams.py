"""Routing of streamed agent output into the aggregator for watched sessions."""

from __future__ import annotations

from types import TracebackType

from loguru import logger

from porter_realtime.aggregator import Block, StreamAggregator, block_kind_of
from porter_realtime.envelope import Envelope
from porter_realtime.payload import SessionStatus, field_str, session_id_of, status_of

AGENT_OUTPUT = "AgentOutput"
AGENT_STATUS_CHANGED = "AgentStatusChanged"


class StreamFeeder:
    """Registry handler that feeds ``AgentOutput`` chunks of watched sessions into the aggregator.

    Sessions nobody watches are ignored, so the aggregator only holds state for
    sessions with a live :class:`SessionStream`. A session's blocks are cleared
    when it leaves ``running``; final content then comes from durable history.
    """

    def __init__(self, aggregator: StreamAggregator) -> None:
        self.aggregator = aggregator

    def __call__(self, envelope: Envelope) -> None:
        session_id = session_id_of(envelope.payload)
        if session_id is None or self.aggregator.interest(session_id) == 0:
            return
        if envelope.kind == AGENT_OUTPUT:
            content = field_str(envelope.payload, "content")
            if content is None:
                return
            kind = block_kind_of(field_str(envelope.payload, "content_type"))
            self.aggregator.feed(session_id, content, kind)
        elif envelope.kind == AGENT_STATUS_CHANGED:
            status = status_of(envelope.payload)
            if status is not None and status is not SessionStatus.RUNNING:
                logger.debug("realtime.stream.reset session_id={} status={}", session_id, status)
                self.aggregator.reset(session_id)


class SessionStream:
    """A consumer's interest in one session's streamed blocks.

    Closing the stream releases the session; the aggregator drops its state
    once no stream for it remains.
    """

    def __init__(self, session_id: str, aggregator: StreamAggregator) -> None:
        self.session_id = session_id
        self._aggregator = aggregator
        self._aggregator.acquire(session_id)
        self._closed = False

    @property
    def blocks(self) -> tuple[Block, ...]:
        return self._aggregator.snapshot(self.session_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def history_reloaded(self) -> None:
        """Drop streamed blocks after durable messages for the session were reloaded."""
        self._aggregator.reset(self.session_id)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._aggregator.release(self.session_id)

    def __enter__(self) -> SessionStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
