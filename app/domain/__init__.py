"""
app/domain package marker.
"""

from app.domain.activities import (
    ActivityDefinition,
    ActivityRow,
    ExecutionEntry,
    QuarterlyValues,
    UnifiedActivity,
)
from app.domain.cancellation import CancellationToken
from app.domain.errors import (
    AggregationCancelled,
    AggregationError,
    CatalogLoadError,
    ReportingPeriodNotFoundError,
    ScopeAccessDeniedError,
    ScopeValidationError,
    UnknownComponentError,
)
from app.domain.scope import ScopeFilter, UserContext

__all__ = [
    "ActivityDefinition",
    "ActivityRow",
    "AggregationCancelled",
    "AggregationError",
    "CancellationToken",
    "CatalogLoadError",
    "ExecutionEntry",
    "QuarterlyValues",
    "ReportingPeriodNotFoundError",
    "ScopeAccessDeniedError",
    "ScopeFilter",
    "ScopeValidationError",
    "UnknownComponentError",
    "UnifiedActivity",
    "UserContext",
]
