"""
Schemas for the unified dashboard endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.domain.scope import ScopeFilter


class DashboardQuery(BaseModel):
    """Query parameters of ``GET /dashboard`` after parsing."""

    components: list[str] = Field(min_length=1)
    scope: str | None = None
    scope_id: int | None = None
    project_type: str | None = None
    period_id: int | None = None
    quarter: int | None = None

    @classmethod
    def from_params(cls, components: str, **params: Any) -> DashboardQuery:
        names = [name.strip() for name in components.split(",") if name.strip()]
        return cls(components=names, **params)

    def to_scope_filter(self) -> ScopeFilter:
        return ScopeFilter(
            scope=self.scope,
            scope_id=self.scope_id,
            project_type=self.project_type,
            period_id=self.period_id,
            quarter=self.quarter,
        )


DashboardResponse = dict[str, dict[str, Any]]
"""``component → {"data": ...}`` or ``component → {"error": True, "message": ...}``."""
