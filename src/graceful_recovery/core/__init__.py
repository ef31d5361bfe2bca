"""Core building blocks: settings, results, session records and snapshots.

Import from the submodules directly, e.g.:
    from graceful_recovery.core.settings import settings, load_settings, get_logger
"""

from __future__ import annotations

__all__ = ["__doc__"]
