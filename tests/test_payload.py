from __future__ import annotations

import pytest

from porter_realtime.payload import SessionStatus, field_of, field_str, session_id_of, status_of


def test_field_of_reads_mappings_only() -> None:
    assert field_of({"a": 1}, "a") == 1
    assert field_of({"a": 1}, "b", "fallback") == "fallback"
    assert field_of(["a"], "a") is None
    assert field_of(None, "a", 0) == 0


@pytest.mark.parametrize(("payload", "expected"), [({"k": "v"}, "v"), ({"k": ""}, None), ({"k": 3}, None), ({}, None)])
def test_field_str(payload: dict[str, object], expected: str | None) -> None:
    assert field_str(payload, "k") == expected


def test_session_id_and_status() -> None:
    payload = {"session_id": "abc", "status": "failed"}

    assert session_id_of(payload) == "abc"
    assert status_of(payload) is SessionStatus.FAILED
    assert status_of({"status": "exploded"}) is None
    assert status_of({"status": ["running"]}) is None
