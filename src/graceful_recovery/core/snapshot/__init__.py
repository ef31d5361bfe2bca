"""Producer registry and state aggregation."""

from __future__ import annotations

from graceful_recovery.core.snapshot.aggregator import NO_STATE, SnapshotAggregator
from graceful_recovery.core.snapshot.registry import ProducerHandle, StateProducerRegistry

__all__ = ["NO_STATE", "ProducerHandle", "SnapshotAggregator", "StateProducerRegistry"]
