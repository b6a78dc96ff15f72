"""
Schemas for the compiled execution statement endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FacilityColumn(_CamelModel):
    id: int
    name: str
    facility_type: str
    project_type: str
    has_data: bool = True


class ActivityRowResponse(_CamelModel):
    code: str
    name: str
    category: str
    subcategory: str | None = None
    display_order: int
    is_section: bool = False
    is_subcategory: bool = False
    is_computed: bool = False
    computation_formula: str | None = None
    values: dict[str, float] = Field(default_factory=dict)
    total: float = 0.0
    level: int = 0
    items: list[ActivityRowResponse] | None = None


class SectionSummary(_CamelModel):
    code: str
    name: str
    total: float
    is_computed: bool = False
    computation_formula: str | None = None


class FacilityTotals(_CamelModel):
    by_facility: dict[str, float] = Field(default_factory=dict)
    grand_total: float = 0.0


class CompiledStatementData(_CamelModel):
    facilities: list[FacilityColumn] = Field(default_factory=list)
    activities: list[ActivityRowResponse] = Field(default_factory=list)
    sections: list[SectionSummary] = Field(default_factory=list)
    totals: FacilityTotals = Field(default_factory=FacilityTotals)


class CompiledStatementMeta(_CamelModel):
    filters: dict[str, Any] = Field(default_factory=dict)
    aggregation_date: str
    facility_count: int = 0
    reporting_period: str
    scope: str | None = None
    performance_warning: str | None = None
    warnings: list[str] = Field(default_factory=list)


class CompiledStatementResponse(_CamelModel):
    data: CompiledStatementData
    meta: CompiledStatementMeta
