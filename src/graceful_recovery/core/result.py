"""Typed Result container for best-effort operations.

Dumps must never raise into the code that triggered them: a timer tick, a
signal handler or an uncaught-fault hook has nothing useful to do with an
exception. Instead, the gateway and the coordinator return a ``Result[T, E]``:

- ``Ok(value)`` / ``Err(error)`` variants,
- ``map`` / ``map_err`` to reshape either side,
- ``unwrap`` / ``unwrap_err`` / ``get_or`` for callers that want a value.

Example
-------
>>> from graceful_recovery.core.result import ok, err
>>> ok(3).map(lambda n: n * 2).unwrap()
6
>>> err("disk full").get_or(0)
0
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, cast

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


class Result(Generic[T, E]):
    """Sum type representing either success (`Ok[T]`) or failure (`Err[E]`)."""

    def is_ok(self) -> bool:
        """Return ``True`` if this is an :class:`Ok` value."""
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        """Return ``True`` if this is an :class:`Err` value."""
        return isinstance(self, Err)

    def __bool__(self) -> bool:
        return self.is_ok()

    def unwrap(self) -> T:
        """Return the inner value if ``Ok``; raise ``RuntimeError`` on ``Err``.

        When the error payload is itself an exception it is chained as the
        ``__cause__`` so the original traceback is not lost.
        """
        if isinstance(self, Ok):
            return cast(Ok[T, E], self).value
        error = cast(Err[T, E], self).error
        if isinstance(error, BaseException):
            raise RuntimeError(f"Attempted to unwrap Err: {error!r}") from error
        raise RuntimeError(f"Attempted to unwrap Err: {error!r}")

    def unwrap_err(self) -> E:
        """Return the error value if ``Err``, else raise."""
        if isinstance(self, Err):
            return cast(Err[T, E], self).error
        raise RuntimeError(f"Attempted to unwrap_err on Ok: {self!r}")

    def get_or(self, default: T) -> T:
        """Return the success value or ``default`` if ``Err``."""
        if isinstance(self, Ok):
            return cast(Ok[T, E], self).value
        return default

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        """Apply ``fn`` to the success value; propagate error unchanged."""
        if isinstance(self, Ok):
            return Ok(fn(cast(Ok[T, E], self).value))
        return cast(Result[U, E], self)

    def map_err(self, fn: Callable[[E], F]) -> Result[T, F]:
        """Apply ``fn`` to the error value; propagate success unchanged."""
        if isinstance(self, Err):
            return Err(fn(cast(Err[T, E], self).error))
        return cast(Result[T, F], self)


@dataclass(frozen=True)
class Ok(Result[T, E]):
    """Successful result wrapping a value of type ``T``."""

    value: T


@dataclass(frozen=True)
class Err(Result[T, E]):
    """Failed result wrapping an error payload of type ``E``."""

    error: E


def ok(value: T) -> Result[T, E]:
    """Construct :class:`Ok` with better type inference at call sites."""
    return Ok(value)


def err(error: E) -> Result[T, E]:
    """Construct :class:`Err` with better type inference at call sites."""
    return Err(error)


__all__ = ["Err", "Ok", "Result", "err", "ok"]
