"""
app/domain/errors.py

Exceptions raised by the aggregation engine.

Data-quality problems (malformed or missing activity data) never raise;
they are coerced to zero values and logged. Everything below is either a
request/component validation failure or an infrastructure failure.
"""

from __future__ import annotations


class AggregationError(Exception):
    """Base exception for aggregation engine failures."""


class ScopeValidationError(AggregationError, ValueError):
    """
    Raised for malformed scope filters.

    Examples: missing ``scopeId`` for province/district/facility scope,
    a ``quarter`` outside 1..4, an unrecognised scope name.
    """


class UnknownComponentError(AggregationError, ValueError):
    """Raised when a dashboard component name has no registered handler."""

    def __init__(self, component: str) -> None:
        super().__init__(f"Unknown component: {component}")
        self.component = component


class ReportingPeriodNotFoundError(AggregationError, LookupError):
    """
    Raised when neither the requested nor an active reporting period exists.

    This is request-level fatal: no component can proceed without a period.
    """


class ScopeAccessDeniedError(AggregationError, PermissionError):
    """Raised at the boundary when a user requests a scope they cannot see."""


class AggregationCancelled(AggregationError, RuntimeError):
    """Raised when a cancellation token fires or its deadline passes."""


class CatalogLoadError(AggregationError, RuntimeError):
    """Raised when an activity catalog cannot be loaded from the store."""
