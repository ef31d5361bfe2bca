"""Disk-backed persistence for session records.

This module holds the two halves of the write/read path:

- ``FileStorage``: the raw byte primitive. Writes go to a sibling temp file,
  are flushed and ``fsync``'d, then moved over the target with ``os.replace``
  so a concurrent reader sees either the old file or the new one.
- ``PersistenceGateway``: encodes a :class:`SessionRecord` as pretty-printed
  JSON and hands it to the storage; on the way back it decodes and validates.

Read policy
-----------
Recovery is best-effort. A missing file, an unreadable file, undecodable
bytes, malformed JSON and a payload of the wrong shape are all reported as
``None`` ("no prior session"), never as an exception.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from graceful_recovery.core.errors import PersistenceError
from graceful_recovery.core.result import Result, err, ok
from graceful_recovery.core.session.record import SessionRecord
from graceful_recovery.core.settings import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Storage(Protocol):
    """Byte-level storage collaborator used by the gateway."""

    def write_bytes(self, path: Path, data: bytes) -> None: ...

    def read_bytes(self, path: Path) -> bytes | None: ...


class FileStorage:
    """Local filesystem storage with atomic replace semantics."""

    def __init__(self, *, fsync: bool = True) -> None:
        self._fsync = fsync

    def write_bytes(self, path: Path, data: bytes) -> None:
        """Atomically replace ``path`` with ``data``.

        Raises ``OSError`` on failure; the temp file is removed in that case.
        """
        parent = path.parent if str(path.parent) else Path(".")
        parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                if self._fsync:
                    os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        if self._fsync and hasattr(os, "O_DIRECTORY"):
            dir_fd = os.open(parent, os.O_RDONLY | os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)

    def read_bytes(self, path: Path) -> bytes | None:
        """Return the file content, or ``None`` when it does not exist."""
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None


def encode_record(record: SessionRecord) -> bytes:
    """Serialize ``record`` to its canonical pretty-printed JSON form.

    Raises ``TypeError``/``ValueError`` when the state is not JSON-representable.
    """
    text = json.dumps(record.to_payload(), ensure_ascii=False, indent=2, allow_nan=False)
    return (text + "\n").encode("utf-8")


def decode_record(data: bytes) -> SessionRecord:
    """Parse bytes produced by :func:`encode_record` back into a record.

    Raises ``ValueError`` (including ``json.JSONDecodeError`` and
    ``UnicodeDecodeError``) or ``ValidationError`` on malformed input.
    """
    payload = json.loads(data.decode("utf-8"))
    if not isinstance(payload, dict) or "meta" not in payload:
        raise ValueError("session payload must be an object with a 'meta' key")
    return SessionRecord.model_validate(payload)


class PersistenceGateway:
    """Write and read the single session file at a configured path."""

    def __init__(self, path: str | os.PathLike[str], storage: Storage | None = None) -> None:
        self.path = Path(path)
        self.storage: Storage = storage if storage is not None else FileStorage()

    async def write(self, record: SessionRecord) -> Result[Path, PersistenceError]:
        """Persist ``record``, overwriting the previous session.

        Returns
        -------
        Result[Path, PersistenceError]
            ``Ok(path)`` on success. Encoding and I/O failures are wrapped in a
            :class:`PersistenceError` whose ``__cause__`` is the original error.
        """
        try:
            data = encode_record(record)
        except (TypeError, ValueError) as exc:
            logger.error("Was unable to serialize session state for %s: %s", self.path, exc)
            return err(self._wrap(exc, record, "state is not JSON-serializable"))

        try:
            # The write blocks on fsync; keep the event loop responsive.
            await asyncio.to_thread(self.storage.write_bytes, self.path, data)
        except Exception as exc:  # storage collaborators may raise anything
            logger.error("Was unable to store session state at %s: %s", self.path, exc)
            return err(self._wrap(exc, record, "write failed"))

        logger.debug("Stored %d bytes of session state at %s", len(data), self.path)
        return ok(self.path)

    async def read(self, path: str | os.PathLike[str] | None = None) -> SessionRecord | None:
        """Load the session at ``path`` (default: the configured path).

        Every failure mode collapses to ``None``.
        """
        target = Path(path) if path is not None else self.path
        try:
            data = await asyncio.to_thread(self.storage.read_bytes, target)
        except Exception as exc:
            logger.debug("No readable session at %s: %s", target, exc)
            return None
        if data is None:
            logger.debug("No session file at %s", target)
            return None

        try:
            return decode_record(data)
        except Exception as exc:
            logger.warning("Ignoring malformed session file %s: %s", target, exc)
            return None

    @staticmethod
    def _wrap(exc: Exception, record: SessionRecord, what: str) -> PersistenceError:
        error = PersistenceError(f"Session {what}: {exc}", reason=record.reason)
        error.__cause__ = exc
        return error


__all__ = [
    "FileStorage",
    "PersistenceGateway",
    "Storage",
    "decode_record",
    "encode_record",
]
