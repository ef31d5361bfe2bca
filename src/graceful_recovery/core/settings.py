"""Centralized configuration for session persistence using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the working directory: .env, .env.local, .env.dev/.env.test/.env.prod

Constructor keyword arguments given to :class:`~graceful_recovery.manager.GracefulRecovery`
are layered on top with :func:`with_overrides`, so an embedding application can
still pin values in code.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

#: Five minutes, in milliseconds.
DEFAULT_AUTOSAVE_MS = 5 * 60 * 1000


def _coerce_interval(value: Any) -> int | None:
    """Return a positive millisecond interval, or ``None`` when autosave is off.

    Booleans, non-numeric strings, zero and negatives all disable autosave.
    Numeric strings are accepted because environment values are always text.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, int | float):
        return None
    if value != value or value <= 0:  # NaN or non-positive
        return None
    return int(value)


class Settings(BaseSettings):
    """Typed configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `GRACEFUL_RECOVERY_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    path : str
        Session file location; maps from `GRACEFUL_RECOVERY_PATH`.
    autosave : int | None
        Autosave interval in milliseconds, ``None`` when disabled.
    catch_exceptions : bool
        Whether uncaught faults are intercepted and trigger a dump.
    exit_exceptions : bool
        After a fault dump, force ``exit(1)`` (True) or only flag failure (False).
    shutdown_timeout : float | None
        Optional upper bound in seconds for the shutdown dump.
    """

    environment: EnvName = Field(default="dev", alias="GRACEFUL_RECOVERY_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")
    path: str = Field(default="session.json", alias="GRACEFUL_RECOVERY_PATH")
    autosave: int | None = Field(default=DEFAULT_AUTOSAVE_MS, alias="GRACEFUL_RECOVERY_AUTOSAVE")
    catch_exceptions: bool = Field(default=True, alias="GRACEFUL_RECOVERY_CATCH_EXCEPTIONS")
    exit_exceptions: bool = Field(default=True, alias="GRACEFUL_RECOVERY_EXIT_EXCEPTIONS")
    shutdown_timeout: float | None = Field(
        default=None, gt=0, alias="GRACEFUL_RECOVERY_SHUTDOWN_TIMEOUT"
    )

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("autosave", mode="before")
    @classmethod
    def _normalize_autosave(cls, v: Any) -> int | None:
        return _coerce_interval(v)

    @property
    def autosave_seconds(self) -> float | None:
        """Return the autosave interval in seconds (``None`` when disabled)."""
        return self.autosave / 1000 if self.autosave else None

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    Tests force a rebuild via `load_settings.cache_clear()` after mutating
    `os.environ`.
    """
    os.environ.setdefault("GRACEFUL_RECOVERY_ENV", "dev")
    return Settings()


def with_overrides(base: Settings | None = None, **overrides: Any) -> Settings:
    """Return a validated copy of ``base`` with keyword overrides applied.

    Overrides use field names (``path``, ``autosave``...), not env aliases.
    Unknown names raise ``TypeError`` so typos do not pass silently.
    """
    base = base if base is not None else load_settings()
    unknown = set(overrides) - set(Settings.model_fields)
    if unknown:
        raise TypeError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
    # The model validates by alias only.
    merged = base.model_dump(by_alias=True)
    for name, value in overrides.items():
        merged[Settings.model_fields[name].alias or name] = value
    return Settings.model_validate(merged)


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "graceful_recovery") -> logging.Logger:
    """Return a process-global logger configured to `settings.log_level`."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
