"""Application-level exception types for the realtime runtime."""

from __future__ import annotations


class PorterRealtimeError(Exception):
    """Base exception for porter-realtime."""


class ConfigurationError(PorterRealtimeError):
    """Base exception for configuration and startup validation errors."""


class InvalidEndpointError(ConfigurationError):
    """Raised when the configured endpoint is not a websocket URL."""


class LoopNotRunningError(PorterRealtimeError):
    """Raised when connection work is requested outside a running event loop."""
