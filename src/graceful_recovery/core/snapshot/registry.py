"""Ordered registry of state-producing callbacks."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

#: ``producer(reason)`` returns the state value directly or an awaitable of it.
Producer = Callable[[str], Any]


@dataclass(frozen=True, slots=True)
class ProducerHandle:
    """Opaque reference to a registered producer."""

    index: int
    name: str


class StateProducerRegistry:
    """
    Append-only list of producers, kept in registration order.

    Registration is expected during start-up, before any trigger can fire.
    Readers get an immutable tuple, so a dump iterating the producers is not
    affected by a late ``register`` call.
    """

    __slots__ = ("_producers",)

    def __init__(self) -> None:
        self._producers: tuple[Producer, ...] = ()

    def register(self, producer: Producer) -> ProducerHandle:
        """Append ``producer`` and return a handle to it.

        The same callable may be registered twice; it then runs twice.
        """
        if not callable(producer):
            raise TypeError(f"producer must be callable, got {type(producer).__name__}")
        handle = ProducerHandle(
            index=len(self._producers),
            name=getattr(producer, "__qualname__", None) or repr(producer),
        )
        self._producers = (*self._producers, producer)
        return handle

    def producers(self) -> tuple[Producer, ...]:
        """Return the registered producers in order."""
        return self._producers

    def __len__(self) -> int:
        return len(self._producers)

    def __iter__(self) -> Iterator[Producer]:
        return iter(self._producers)


__all__ = ["Producer", "ProducerHandle", "StateProducerRegistry"]
