"""Configuration management for porter-realtime."""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from porter_realtime.connection import DEFAULT_RECONNECT_DELAY_SECONDS, DEFAULT_URL
from porter_realtime.errors import InvalidEndpointError


class RealtimeSettings(BaseSettings):
    """Runtime settings, read from ``PORTER_*`` environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="PORTER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ws_url: str = Field(default=DEFAULT_URL, description="Websocket endpoint of the Porter server")
    reconnect_delay_seconds: float = Field(
        default=DEFAULT_RECONNECT_DELAY_SECONDS, gt=0, description="Fixed delay before reopening a lost connection"
    )
    open_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for the opening handshake")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["text", "rich"] = Field(default="text", description="Log format")

    @field_validator("ws_url")
    @classmethod
    def _check_ws_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in {"ws", "wss"} or not parts.hostname:
            # Not a ValueError subclass, so pydantic lets it propagate unwrapped.
            raise InvalidEndpointError(f"expected a ws:// or wss:// URL, got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.strip().upper()


def get_settings(**overrides: Any) -> RealtimeSettings:
    """Build settings from the environment, with explicit keyword overrides applied on top."""

    values = {key: value for key, value in overrides.items() if value is not None}
    return RealtimeSettings(**values)
