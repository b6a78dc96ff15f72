"""
Environment-driven database configuration.

The URL is resolved from ``DATABASE_URL``, then ``CLOUD_DATABASE_URL`` (in
cloud-like environments), then ``LOCAL_DATABASE_URL``. Pool sizing follows
the dashboard fan-out: every concurrent component holds its own session.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite ``postgres://`` and ``postgresql://`` to the psycopg driver form.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    load_env_files()

    direct_url = os.getenv("DATABASE_URL")
    if direct_url:
        return normalize_postgres_url(direct_url)

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    cloud_url = os.getenv("CLOUD_DATABASE_URL")
    if environment in _CLOUD_ENVIRONMENTS and cloud_url:
        return normalize_postgres_url(cloud_url)

    local_url = os.getenv("LOCAL_DATABASE_URL")
    if local_url:
        return normalize_postgres_url(local_url)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 9
    max_overflow: int = 10
    pool_recycle: int = 1800


def get_database_settings() -> DatabaseSettings:
    """
    Read database settings; ``DB_POOL_SIZE`` defaults to
    ``DASHBOARD_MAX_WORKERS + 1``.
    """

    url = resolve_database_url()
    workers = max(1, _int_env("DASHBOARD_MAX_WORKERS", 8))
    return DatabaseSettings(
        url=url,
        echo=os.getenv("SQL_ECHO", "").strip().lower() in _TRUE_VALUES,
        pool_size=_int_env("DB_POOL_SIZE", workers + 1),
        max_overflow=_int_env("DB_MAX_OVERFLOW", 10),
        pool_recycle=_int_env("DB_POOL_RECYCLE", 1800),
    )
