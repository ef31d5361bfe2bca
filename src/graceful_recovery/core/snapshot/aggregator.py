"""Collect state from every registered producer for one dump.

Shape rules
-----------
- no producers  -> :data:`NO_STATE` (the caller suppresses the dump);
- one producer  -> that producer's value, unwrapped;
- N producers   -> a list of N values in registration order. A producer that
  returns ``None`` still occupies its slot.

Producers run strictly one after another. A later producer may depend on side
effects of an earlier one, and a crash-time dump should not fan out work.
Exceptions raised by a producer are not caught here.
"""

from __future__ import annotations

import inspect
from typing import Any, Final

from graceful_recovery.core.snapshot.registry import Producer, StateProducerRegistry
from graceful_recovery.core.settings import get_logger

logger = get_logger(__name__)


class _NoState:
    """Sentinel type for "nothing to dump"."""

    _instance: _NoState | None = None

    def __new__(cls) -> _NoState:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_STATE"


NO_STATE: Final = _NoState()


async def _invoke(producer: Producer, reason: str) -> Any:
    value = producer(reason)
    if inspect.isawaitable(value):
        value = await value
    return value


class SnapshotAggregator:
    """Run the registry's producers for a trigger reason and combine results."""

    def __init__(self, registry: StateProducerRegistry) -> None:
        self.registry = registry

    async def collect(self, reason: str) -> Any:
        """Return the combined state for ``reason`` (see module docs for shape)."""
        producers = self.registry.producers()
        if not producers:
            return NO_STATE
        if len(producers) == 1:
            return await _invoke(producers[0], reason)

        values: list[Any] = []
        for position, producer in enumerate(producers):
            logger.debug("Collecting state from producer %d/%d", position + 1, len(producers))
            values.append(await _invoke(producer, reason))
        return values


__all__ = ["NO_STATE", "SnapshotAggregator"]
