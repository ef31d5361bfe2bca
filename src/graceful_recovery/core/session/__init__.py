"""Session record model and its persistence gateway."""

from __future__ import annotations

from graceful_recovery.core.session.record import DumpReason, SessionMeta, SessionRecord
from graceful_recovery.core.session.storage import FileStorage, PersistenceGateway, Storage

__all__ = [
    "DumpReason",
    "FileStorage",
    "PersistenceGateway",
    "SessionMeta",
    "SessionRecord",
    "Storage",
]
