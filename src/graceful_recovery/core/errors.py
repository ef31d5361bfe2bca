"""Exception taxonomy for dump attempts.

These are carried inside :class:`~graceful_recovery.core.result.Err` values
rather than raised: a dump is best-effort, and the triggering event (timer,
signal, fault) proceeds regardless of outcome.
"""

from __future__ import annotations


class GracefulRecoveryError(Exception):
    """Base class for all errors produced by this package."""


class DumpError(GracefulRecoveryError):
    """A dump attempt did not produce a session file."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class NoProducersError(DumpError):
    """No producer was registered; the dump was suppressed to keep the old file."""


class DumpInFlightError(DumpError):
    """Another dump was already running; this trigger was dropped."""


class ProducerError(DumpError):
    """A registered producer raised while collecting state (see ``__cause__``)."""


class PersistenceError(DumpError):
    """The session record could not be serialized or written (see ``__cause__``)."""


__all__ = [
    "DumpError",
    "DumpInFlightError",
    "GracefulRecoveryError",
    "NoProducersError",
    "PersistenceError",
    "ProducerError",
]
