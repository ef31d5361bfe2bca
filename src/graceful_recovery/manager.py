"""
GracefulRecovery: the embeddable entry point.

Wires the registry, aggregator, gateway, coordinator and recovery service
together from a single :class:`~graceful_recovery.core.settings.Settings`.

Usage
-----
>>> recovery = GracefulRecovery(path="state/session.json", autosave=60_000)
>>> previous = await recovery.recovery()          # SessionRecord | None
>>> recovery.register_snapshot(lambda reason: cache.to_dict())
>>> async with recovery:                          # hooks + autosave timer
...     await serve_forever()                       # clean return dumps "shutdown"
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

from graceful_recovery.core.session.record import DumpReason, SessionRecord
from graceful_recovery.core.session.storage import PersistenceGateway, Storage
from graceful_recovery.core.settings import Settings, load_settings, with_overrides
from graceful_recovery.core.snapshot.aggregator import SnapshotAggregator
from graceful_recovery.core.snapshot.registry import (
    Producer,
    ProducerHandle,
    StateProducerRegistry,
)
from graceful_recovery.lifecycle.coordinator import DumpResult, DumpState, LifecycleCoordinator
from graceful_recovery.lifecycle.exit_hooks import ExitHooks, ProcessExitHooks
from graceful_recovery.recovery import RecoveryCallback, RecoveryService


class GracefulRecovery:
    """Persist application state on autosave, shutdown and crash; recover it later.

    Parameters
    ----------
    config:
        Base settings; defaults to the cached env/.env settings.
    hooks:
        Exit-hook facility. Defaults to :class:`ProcessExitHooks`.
    storage:
        Byte storage collaborator. Defaults to atomic local files.
    **overrides:
        Field overrides applied on top of ``config`` (``path``, ``autosave``,
        ``catch_exceptions``, ``exit_exceptions``, ``shutdown_timeout``).
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        hooks: ExitHooks | None = None,
        storage: Storage | None = None,
        **overrides: Any,
    ) -> None:
        base = config if config is not None else load_settings()
        self.config = with_overrides(base, **overrides) if overrides else base

        self.registry = StateProducerRegistry()
        self.gateway = PersistenceGateway(self.config.path, storage)
        self.coordinator = LifecycleCoordinator(
            SnapshotAggregator(self.registry),
            self.gateway,
            hooks if hooks is not None else ProcessExitHooks(),
            config=self.config,
        )
        self.recovery_service = RecoveryService(self.gateway)

    @property
    def state(self) -> DumpState:
        return self.coordinator.state

    def register_snapshot(self, producer: Producer) -> ProducerHandle:
        """Register ``producer(reason)``; results are stored in registration order."""
        return self.registry.register(producer)

    async def recovery(self, callback: RecoveryCallback | None = None) -> SessionRecord | None:
        """Load the previous session (``None`` if missing or unreadable)."""
        return await self.recovery_service.recover(callback)

    async def dump(
        self,
        reason: DumpReason | str = DumpReason.AUTOSAVE,
        error: BaseException | None = None,
    ) -> DumpResult:
        """Take an on-demand snapshot, subject to the single-flight rule."""
        return await self.coordinator.dump(reason, error)

    def start(self) -> GracefulRecovery:
        """Install exit hooks and start autosave (when called inside an event loop)."""
        self.coordinator.start()
        return self

    def stop(self) -> None:
        """Stop autosave and remove exit hooks. Does not dump."""
        self.coordinator.stop()

    async def __aenter__(self) -> GracefulRecovery:
        return self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Leave the block; a clean exit writes the final ``shutdown`` dump first."""
        try:
            if exc_type is None:
                await self.coordinator.on_shutdown()
        finally:
            self.stop()


__all__ = ["GracefulRecovery"]
