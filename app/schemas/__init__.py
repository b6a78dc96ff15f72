"""
app/schemas package marker.
"""

from app.schemas.dashboard import DashboardQuery, DashboardResponse
from app.schemas.statements import (
    ActivityRowResponse,
    CompiledStatementResponse,
    FacilityColumn,
    SectionSummary,
)

__all__ = [
    "ActivityRowResponse",
    "CompiledStatementResponse",
    "DashboardQuery",
    "DashboardResponse",
    "FacilityColumn",
    "SectionSummary",
]
