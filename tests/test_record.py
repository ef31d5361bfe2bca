"""Unit tests for the session record model and fault descriptions."""

from __future__ import annotations

import time
from typing import Any

import pytest
from pydantic import ValidationError

from graceful_recovery.core.session.record import (
    DumpReason,
    SessionRecord,
    describe_error,
    now_ms,
)


class QuotaExceeded(Exception):
    def __init__(self, message: str, limit: int) -> None:
        super().__init__(message)
        self.limit = limit
        self.tags = ("billing", "quota")
        self._private = "hidden"


class SerializableFault:
    def to_json(self) -> dict[str, Any]:
        return {"code": "E42", "detail": "custom"}


def _raised(exc: BaseException) -> BaseException:
    try:
        raise exc
    except BaseException as caught:
        return caught


def test_now_ms_is_current_epoch_millis() -> None:
    before = int(time.time() * 1000)
    value = now_ms()
    after = int(time.time() * 1000)
    assert before - 1 <= value <= after + 1


def test_build_uses_reason_tag_and_timestamp() -> None:
    record = SessionRecord.build(DumpReason.AUTOSAVE, {"foo": "bar"}, at=123)
    assert record.meta.reason == "autosave"
    assert record.meta.at == 123
    assert record.meta.error is None
    assert record.state == {"foo": "bar"}


def test_payload_omits_error_when_absent() -> None:
    payload = SessionRecord.build("shutdown", [1, "x"], at=1).to_payload()
    assert list(payload) == ["meta", "state"]
    assert payload["meta"] == {"at": 1, "reason": "shutdown"}


def test_payload_places_error_last_in_meta() -> None:
    record = SessionRecord.build(
        DumpReason.UNCAUGHT_EXCEPTION, None, _raised(RuntimeError("oops")), at=5
    )
    meta = record.to_payload()["meta"]
    assert list(meta) == ["at", "reason", "error"]
    assert meta["error"]["message"] == "oops"


def test_record_is_immutable() -> None:
    record = SessionRecord.build("autosave", 1)
    with pytest.raises(ValidationError):
        record.state = 2  # type: ignore[misc]


def test_describe_error_for_exception() -> None:
    desc = describe_error(_raised(QuotaExceeded("too many", limit=10)))

    assert desc["name"] == "QuotaExceeded"
    assert desc["message"] == "too many"
    assert "Traceback" in desc["stack"] and "QuotaExceeded: too many" in desc["stack"]
    assert desc["limit"] == 10
    assert desc["tags"] == ["billing", "quota"]
    assert "_private" not in desc


def test_describe_error_prefers_to_json() -> None:
    assert describe_error(SerializableFault()) == {"code": "E42", "detail": "custom"}


def test_describe_error_passes_plain_values_through() -> None:
    assert describe_error(None) is None
    assert describe_error("just text") == "just text"
    assert describe_error({"code": 3, 4: object}) == {"code": 3, "4": repr(object)}
