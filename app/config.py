"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class DashboardSettings:
    """
    Runtime settings for the dashboard orchestrator.

    ``component_timeout_seconds`` becomes the deadline of the request's
    cancellation token; ``0`` disables the deadline.
    """

    max_workers: int = 8
    component_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class StatementSettings:
    """
    Runtime settings for compiled execution statements.
    """

    performance_warning_threshold: int = 100
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    debug_aggregation: bool = False


@lru_cache(maxsize=1)
def get_dashboard_settings() -> DashboardSettings:
    """
    Return cached dashboard settings from environment variables.
    """

    return DashboardSettings(
        max_workers=max(1, _get_int_env("DASHBOARD_MAX_WORKERS", 8)),
        component_timeout_seconds=max(0.0, _get_float_env("DASHBOARD_COMPONENT_TIMEOUT_SECONDS", 30.0)),
    )


@lru_cache(maxsize=1)
def get_statement_settings() -> StatementSettings:
    """
    Return cached compiled-statement settings from environment variables.
    """

    return StatementSettings(
        performance_warning_threshold=max(1, _get_int_env("COMPILED_PERFORMANCE_WARNING_THRESHOLD", 100)),
        timeout_seconds=max(0.0, _get_float_env("COMPILED_TIMEOUT_SECONDS", 60.0)),
    )


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings(
        level=_get_str_env("LOG_LEVEL", "INFO").upper(),
        debug_aggregation=_get_bool_env("DEBUG_AGGREGATION", False),
    )
