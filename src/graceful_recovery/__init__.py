"""graceful_recovery: persist application state on shutdown, crash and autosave.

The public surface is re-exported here:

    from graceful_recovery import GracefulRecovery, SessionRecord, DumpReason
"""

from __future__ import annotations

from graceful_recovery.core.session.record import DumpReason, SessionRecord
from graceful_recovery.lifecycle.coordinator import DumpState
from graceful_recovery.manager import GracefulRecovery

__all__ = ["DumpReason", "DumpState", "GracefulRecovery", "SessionRecord", "__version__"]
__version__ = "0.1.0"
