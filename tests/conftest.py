"""Shared fixtures for the session persistence tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fakes import FakeExitHooks, MemoryStorage

from graceful_recovery.core.settings import Settings, load_settings, with_overrides


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _fresh_settings() -> Generator[None, None, None]:
    """Rebuild cached settings around each test so env tweaks do not leak."""
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture  # type: ignore[misc]
def hooks() -> FakeExitHooks:
    return FakeExitHooks()


@pytest.fixture  # type: ignore[misc]
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture  # type: ignore[misc]
def config(tmp_path: Path) -> Settings:
    """Settings pointing into `tmp_path`, autosave off, exit on faults."""
    overrides: dict[str, Any] = {
        "path": str(tmp_path / "session.json"),
        "autosave": None,
        "catch_exceptions": True,
        "exit_exceptions": True,
        "shutdown_timeout": None,
    }
    return with_overrides(Settings.model_validate({}), **overrides)
