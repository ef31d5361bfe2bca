"""Dump coordination and process exit hooks."""

from __future__ import annotations

from graceful_recovery.lifecycle.coordinator import DumpState, LifecycleCoordinator
from graceful_recovery.lifecycle.exit_hooks import ExitHooks, ProcessExitHooks

__all__ = ["DumpState", "ExitHooks", "LifecycleCoordinator", "ProcessExitHooks"]
