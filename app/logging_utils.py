"""
Structured logging helpers for aggregation workflows.

Each aggregation run (dashboard request, compiled statement, multi-catalog
pass) emits one compact JSON line carrying the event name, the caller when
known, the elapsed time and run-specific counters.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from app.domain.scope import UserContext


def elapsed_ms(started: float) -> float:
    """Milliseconds since *started*, a ``time.perf_counter()`` reading."""
    return round((time.perf_counter() - started) * 1000, 2)


def log_aggregation_event(
    logger: logging.Logger,
    event: str,
    *,
    user: UserContext | None = None,
    started: float | None = None,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Emit one aggregation summary line.

    ``user_id``/``role`` are added when *user* is given and ``duration_ms``
    when *started* is given. Skipped entirely when *level* is disabled.
    """

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    if user is not None:
        payload["user_id"] = user.user_id
        payload["role"] = user.role
    if started is not None:
        payload["duration_ms"] = elapsed_ms(started)
    payload.update(fields)
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))
