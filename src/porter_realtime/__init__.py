"""porter-realtime - keeps a client consistent with Porter server events."""

from porter_realtime.aggregator import Block, BlockKind, StreamAggregator
from porter_realtime.connection import ConnectionManager, ConnectionState, WebSocketTransport
from porter_realtime.envelope import DecodeFailure, Envelope, decode_frame
from porter_realtime.invalidation import InvalidationRouter, InvalidationRule, default_rules
from porter_realtime.registry import SubscriberRegistry
from porter_realtime.runtime import RealtimeRuntime
from porter_realtime.streams import SessionStream, StreamFeeder

__version__ = "0.1.0"

__all__ = [
    "Block",
    "BlockKind",
    "ConnectionManager",
    "ConnectionState",
    "DecodeFailure",
    "Envelope",
    "InvalidationRouter",
    "InvalidationRule",
    "RealtimeRuntime",
    "SessionStream",
    "StreamAggregator",
    "StreamFeeder",
    "SubscriberRegistry",
    "WebSocketTransport",
    "decode_frame",
    "default_rules",
]
