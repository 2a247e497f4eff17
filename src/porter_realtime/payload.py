"""Fallible field extraction for untyped event payloads."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any


class SessionStatus(StrEnum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def field_of(payload: Any, key: str, default: Any = None) -> Any:
    """Read a field from a mapping payload, returning ``default`` for anything else."""

    if isinstance(payload, Mapping):
        return payload.get(key, default)
    return default


def field_str(payload: Any, key: str) -> str | None:
    """Read a non-empty string field, or ``None`` when absent or mistyped."""

    value = field_of(payload, key)
    if isinstance(value, str) and value:
        return value
    return None


def session_id_of(payload: Any) -> str | None:
    return field_str(payload, "session_id")


def status_of(payload: Any) -> SessionStatus | None:
    raw = field_str(payload, "status")
    if raw is None:
        return None
    try:
        return SessionStatus(raw)
    except ValueError:
        return None
