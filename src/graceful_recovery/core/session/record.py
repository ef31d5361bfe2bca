"""
Session record definition.

This module defines the immutable unit that is persisted to disk on every
dump, plus the helpers that turn a live fault into JSON-safe metadata.

Design Notes
------------
- **Immutability**: records are frozen Pydantic models; a dump builds one,
  hands it to the gateway and discards it.
- **Opaque state**: ``state`` is typed ``Any`` and never inspected. It is
  only required to be JSON-representable when written.
- **Canonical layout**: :meth:`SessionRecord.to_payload` fixes the key order
  (``meta`` before ``state``; ``at``, ``reason``, then ``error``) and omits
  ``error`` entirely when there is none, so the file matches what other
  readers of the format expect.
"""

from __future__ import annotations

import time
import traceback
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DumpReason(str, Enum):
    """Why a dump was taken. Stored verbatim in ``meta.reason``."""

    SHUTDOWN = "shutdown"
    AUTOSAVE = "autosave"
    UNCAUGHT_EXCEPTION = "uncaught-exception"


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def _jsonify(value: Any) -> Any:
    """
    Return a JSON-safe representation of ``value``.

    - Primitives (None, bool, int, float, str) -> returned as-is.
    - dict -> new dict with keys coerced to str.
    - list/tuple/set -> new list with recursive conversion.
    - Pydantic models -> ``model_dump(mode="json")``.
    - anything else -> ``repr(obj)`` fallback.
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonify(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [_jsonify(v) for v in value]
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return repr(value)


def describe_error(error: Any) -> Any:
    """
    Convert a fault into the structured form stored in ``meta.error``.

    Parameters
    ----------
    error : Any
        Usually an exception, but custom error payloads are accepted.

    Returns
    -------
    Any
        ``None`` for no error; the result of ``error.to_json()`` when the
        object provides one; for exceptions a dict with ``name``, ``message``,
        ``stack`` plus any instance attributes; otherwise a JSON-safe copy
        of the value itself.
    """
    if error is None:
        return None

    to_json = getattr(error, "to_json", None)
    if callable(to_json):
        return _jsonify(to_json())

    if isinstance(error, BaseException):
        described: dict[str, Any] = {
            "name": type(error).__name__,
            "message": str(error),
            "stack": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ).rstrip("\n"),
        }
        for key, value in vars(error).items():
            if key.startswith("_") or key in described:
                continue
            described[key] = _jsonify(value)
        return described

    return _jsonify(error)


class SessionMeta(BaseModel):
    """Metadata describing when and why a record was produced."""

    model_config = ConfigDict(frozen=True)

    at: int = Field(description="Milliseconds since the epoch at dump time")
    # Plain ``str`` on read so files written with newer reason tags still load.
    reason: str = Field(description="Trigger tag, see DumpReason")
    error: Any = Field(default=None, description="Fault description (uncaught-exception only)")


class SessionRecord(BaseModel):
    """The persisted unit: metadata plus an opaque application state."""

    model_config = ConfigDict(frozen=True)

    meta: SessionMeta
    state: Any = None

    @classmethod
    def build(
        cls,
        reason: DumpReason | str,
        state: Any,
        error: Any = None,
        *,
        at: int | None = None,
    ) -> SessionRecord:
        """Assemble a record for ``reason`` stamped with the current time."""
        tag = reason.value if isinstance(reason, DumpReason) else str(reason)
        meta = SessionMeta(
            at=now_ms() if at is None else at,
            reason=tag,
            error=describe_error(error),
        )
        return cls(meta=meta, state=state)

    @property
    def reason(self) -> str:
        return self.meta.reason

    def to_payload(self) -> dict[str, Any]:
        """Return the canonical dict written to disk (``error`` only when set)."""
        meta: dict[str, Any] = {"at": self.meta.at, "reason": self.meta.reason}
        if self.meta.error is not None:
            meta["error"] = self.meta.error
        return {"meta": meta, "state": self.state}


__all__ = ["DumpReason", "SessionMeta", "SessionRecord", "describe_error", "now_ms"]
