"""Tests for the persistence gateway and the atomic file storage.

Scenarios
---------
1. **Round trip**: a written record reads back field-for-field equal.
2. **Canonical form**: pretty-printed JSON with `meta` before `state`.
3. **Read misses**: missing, malformed and wrongly shaped files are `None`.
4. **Write failures**: returned as `Err`, never raised; the old file survives.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from fakes import MemoryStorage

from graceful_recovery.core.errors import PersistenceError
from graceful_recovery.core.session.record import DumpReason, SessionRecord
from graceful_recovery.core.session.storage import (
    FileStorage,
    PersistenceGateway,
    decode_record,
    encode_record,
)


def _write(gateway: PersistenceGateway, record: SessionRecord) -> Any:
    return asyncio.run(gateway.write(record))


@pytest.mark.parametrize(  # type: ignore[misc]
    "state",
    [
        {"foo": "bar"},
        [1, "x", None, {"nested": [True, 2.5]}],
        "plain string",
        None,
    ],
)
def test_round_trip_through_disk(tmp_path: Path, state: Any) -> None:
    gateway = PersistenceGateway(tmp_path / "session.json")
    record = SessionRecord.build(DumpReason.SHUTDOWN, state)

    result = _write(gateway, record)
    assert result.is_ok() and result.unwrap() == tmp_path / "session.json"

    loaded = asyncio.run(gateway.read())
    assert loaded == record


def test_file_is_canonical_pretty_json(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    record = SessionRecord.build(DumpReason.AUTOSAVE, {"foo": "bar"}, at=1700000000000)
    _write(PersistenceGateway(path), record)

    text = path.read_text(encoding="utf-8")
    assert text.index('"meta"') < text.index('"state"')
    assert '\n  "meta": {\n    "at": 1700000000000,\n    "reason": "autosave"\n  }' in text
    assert '"error"' not in text
    assert json.loads(text) == {
        "meta": {"at": 1700000000000, "reason": "autosave"},
        "state": {"foo": "bar"},
    }


def test_write_overwrites_and_leaves_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "session.json"
    gateway = PersistenceGateway(path)
    _write(gateway, SessionRecord.build("autosave", 1))
    _write(gateway, SessionRecord.build("shutdown", 2))

    assert json.loads(path.read_text(encoding="utf-8"))["state"] == 2
    assert sorted(p.name for p in path.parent.iterdir()) == ["session.json"]


def test_read_missing_file_is_none(tmp_path: Path) -> None:
    gateway = PersistenceGateway(tmp_path / "absent.json")
    assert asyncio.run(gateway.read()) is None


@pytest.mark.parametrize(  # type: ignore[misc]
    "content",
    [
        b"",
        b"{not json",
        b"\xff\xfe\x00garbage",
        b"[1, 2, 3]",
        b'{"state": 1}',
        b'{"meta": {"reason": "autosave"}, "state": 1}',
        b'{"meta": {"at": "yesterday", "reason": "autosave"}, "state": 1}',
        b"[" * 200_000 + b"]" * 200_000,
    ],
)
def test_read_malformed_file_is_none(tmp_path: Path, content: bytes) -> None:
    path = tmp_path / "session.json"
    path.write_bytes(content)
    assert asyncio.run(PersistenceGateway(path).read()) is None


def test_read_explicit_path_overrides_configured_one(tmp_path: Path) -> None:
    other = tmp_path / "other.json"
    other.write_bytes(encode_record(SessionRecord.build("autosave", "elsewhere")))

    gateway = PersistenceGateway(tmp_path / "session.json")
    loaded = asyncio.run(gateway.read(other))
    assert loaded is not None and loaded.state == "elsewhere"


def test_read_accepts_unknown_reason_tags(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text('{"meta": {"at": 1, "reason": "maintenance"}, "state": []}')
    loaded = asyncio.run(PersistenceGateway(path).read())
    assert loaded is not None and loaded.reason == "maintenance"


def test_unserializable_state_is_err_and_keeps_old_file(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    gateway = PersistenceGateway(path)
    _write(gateway, SessionRecord.build("autosave", {"good": True}))

    result = _write(gateway, SessionRecord.build("autosave", {"bad": object()}))

    assert result.is_err()
    failure = result.unwrap_err()
    assert isinstance(failure, PersistenceError)
    assert isinstance(failure.__cause__, TypeError)
    assert json.loads(path.read_text(encoding="utf-8"))["state"] == {"good": True}


def test_storage_failure_is_err() -> None:
    storage = MemoryStorage(fail_with=PermissionError("read-only filesystem"))
    gateway = PersistenceGateway("session.json", storage)

    result = _write(gateway, SessionRecord.build("shutdown", 1))

    assert result.is_err()
    assert isinstance(result.unwrap_err().__cause__, PermissionError)
    assert result.unwrap_err().reason == "shutdown"


def test_file_storage_reads_none_for_missing(tmp_path: Path) -> None:
    assert FileStorage(fsync=False).read_bytes(tmp_path / "nope.json") is None


def test_decode_rejects_non_object() -> None:
    with pytest.raises(ValueError):
        decode_record(b'"just a string"')
