"""Start-up read path: load the last persisted session, if any."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from graceful_recovery.core.session.record import SessionRecord
from graceful_recovery.core.session.storage import PersistenceGateway
from graceful_recovery.core.settings import get_logger

logger = get_logger(__name__)

RecoveryCallback = Callable[[SessionRecord | None], Any]


class RecoveryService:
    """Thin wrapper over :meth:`PersistenceGateway.read` for the configured path."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway

    async def recover(self, callback: RecoveryCallback | None = None) -> SessionRecord | None:
        """Return the last session record, or ``None`` when there is none.

        ``callback`` (sync or async) is called with the same value before it
        is returned. Nothing here touches producers or the coordinator.
        """
        session = await self.gateway.read()
        if session is None:
            logger.info("No previous session found at %s", self.gateway.path)
        else:
            logger.info(
                "Recovered session from %s (reason=%s, at=%d)",
                self.gateway.path,
                session.meta.reason,
                session.meta.at,
            )

        if callback is not None:
            outcome = callback(session)
            if inspect.isawaitable(outcome):
                await outcome
        return session


__all__ = ["RecoveryCallback", "RecoveryService"]
