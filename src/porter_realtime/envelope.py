"""Decoding of raw websocket frames into typed envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, ValidationError


class Envelope(BaseModel):
    """One decoded event: an open string ``kind`` tag and an opaque ``payload``.

    The server serializes events as ``{"type": ..., "data": ...}``; the
    ``kind``/``payload`` spelling is accepted as well.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: StrictStr = Field(min_length=1, validation_alias=AliasChoices("kind", "type"))
    payload: Any = Field(default=None, validation_alias=AliasChoices("payload", "data"))


@dataclass(frozen=True)
class DecodeFailure:
    """A frame that could not be decoded into an envelope."""

    raw: str | bytes
    reason: str


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors(include_url=False):
        location = ".".join(str(part) for part in item["loc"]) or "<frame>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def decode_frame(raw: Any) -> Envelope | DecodeFailure:
    """Decode one inbound frame. Never raises for malformed input."""

    if not isinstance(raw, (str, bytes, bytearray)):
        return DecodeFailure(raw=repr(raw), reason=f"unsupported frame type {type(raw).__name__}")
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as error:
        return DecodeFailure(raw=bytes(raw) if isinstance(raw, bytearray) else raw, reason=_describe(error))
