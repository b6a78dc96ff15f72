"""
app/domain/cancellation.py

Cooperative cancellation for aggregation work.

The aggregation core checks the token at every facility-query boundary.
Timeouts themselves are owned by the HTTP boundary; this token only lets
long-running loops notice that their result is no longer wanted.
"""

from __future__ import annotations

import threading
import time

from app.domain.errors import AggregationCancelled


class CancellationToken:
    """
    Thread-safe cancel flag with an optional monotonic deadline.

    Parameters
    ----------
    timeout_seconds:
        When given, the token expires this many seconds after construction.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AggregationCancelled("Aggregation cancelled or deadline exceeded")
