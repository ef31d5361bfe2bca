"""
Smoke tests for package structure and availability.

Scope
-----
These tests strictly verify that the package is installed correctly in the
environment and that the public surface is importable.
"""

from __future__ import annotations

import importlib

from graceful_recovery import __version__


def test_package_importable() -> None:
    """Ensure the top-level package can be imported."""
    mod = importlib.import_module("graceful_recovery")
    assert mod is not None


def test_version_is_set() -> None:
    """Ensure the package exposes a valid version string."""
    assert isinstance(__version__, str)
    assert len(__version__) > 0


def test_public_names_exported() -> None:
    mod = importlib.import_module("graceful_recovery")
    for name in ("GracefulRecovery", "SessionRecord", "DumpReason", "DumpState"):
        assert hasattr(mod, name), f"graceful_recovery must export {name}"


def test_cli_module_exposes_app() -> None:
    """
    The entry point in pyproject.toml (`graceful_recovery.cli:app`) requires
    the CLI module to expose a Typer `app` object.
    """
    cli = importlib.import_module("graceful_recovery.cli")
    assert hasattr(cli, "app"), "graceful_recovery.cli must expose an 'app' Typer object."
