"""
app/domain/activities.py

Activity catalog and aggregation value types.

Raw form data arrives as loosely-typed JSON: ``formData.activities`` is
either an object keyed by activity code or a list of activity objects that
each carry a ``code``. :func:`normalize_activities` collapses both shapes
into a single ``code → activity`` mapping at the ingestion boundary, so the
extraction and aggregation layers only ever see one shape.

Aliases
-------
AggregatedData  : ``activity_code → facility_id → QuarterlyValues``
ComputedValues  : ``"surplus" | "netFinancialAssets" → facility_id → QuarterlyValues``
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

# ---------------------------------------------------------------------------
# Section constants
# ---------------------------------------------------------------------------

SECTION_CODES: Final[tuple[str, ...]] = ("A", "B", "X", "C", "D", "E", "F", "G")
"""Fixed rendering order of statement sections."""

FLOW_SECTIONS: Final[frozenset[str]] = frozenset({"A", "B", "G"})
STOCK_SECTIONS: Final[frozenset[str]] = frozenset({"D", "E", "F"})

SURPLUS_KEY: Final[str] = "surplus"
NET_FINANCIAL_ASSETS_KEY: Final[str] = "netFinancialAssets"

# Display rows such as "A. Receipts" repeat an already-aggregated section total.
_TOTAL_ROW_PATTERN = re.compile(r"^[A-GX]\.\s")


def is_total_row(name: str) -> bool:
    """Return True for catalog rows whose name starts with ``"<Letter>. "``."""
    return bool(_TOTAL_ROW_PATTERN.match(name or ""))


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuarterlyValues:
    """
    Quarterly amounts for one activity at one facility.

    ``total`` is the sum of the quarters for flow rows unless the source
    record carried a precomputed ``cumulative_balance``, in which case the
    override is kept verbatim.
    """

    q1: float = 0.0
    q2: float = 0.0
    q3: float = 0.0
    q4: float = 0.0
    total: float = 0.0

    @classmethod
    def zero(cls) -> QuarterlyValues:
        return cls()

    @classmethod
    def from_quarters(cls, q1: float, q2: float, q3: float, q4: float) -> QuarterlyValues:
        return cls(q1=q1, q2=q2, q3=q3, q4=q4, total=q1 + q2 + q3 + q4)

    def last_nonzero_quarter(self) -> float:
        """
        Closing balance of a stock row: ``q4 or q3 or q2 or q1 or 0``.

        An explicit zero in a later quarter falls through to the previous
        quarter, so a reported balance of zero cannot be told apart from an
        unreported one.
        """
        return self.q4 or self.q3 or self.q2 or self.q1 or 0.0

    def to_dict(self) -> dict[str, float]:
        return {"q1": self.q1, "q2": self.q2, "q3": self.q3, "q4": self.q4, "total": self.total}


AggregatedData = Mapping[str, Mapping[str, QuarterlyValues]]
ComputedValues = Mapping[str, Mapping[str, QuarterlyValues]]


@dataclass(frozen=True)
class ActivityDefinition:
    """
    Canonical catalog entry for one statement line.

    ``level`` is 0 for sections, 1 for direct items and 2 for items that sit
    under a subcategory.
    """

    code: str
    name: str
    category: str
    display_order: int
    subcategory: str | None = None
    is_section: bool = False
    is_subcategory: bool = False
    is_computed: bool = False
    computation_formula: str | None = None
    level: int = 1

    @property
    def grouping_key(self) -> tuple[str, str, int]:
        """Identity of a logical line item across facility-type catalogs."""
        return (self.category, self.subcategory or "none", self.display_order)


@dataclass(frozen=True)
class UnifiedActivity(ActivityDefinition):
    """An :class:`ActivityDefinition` merged across facility-type catalogs."""

    facility_types: frozenset[str] = frozenset()
    source_code: str | None = None


@dataclass(frozen=True)
class ActivityRow:
    """Node of the statement hierarchy: section, subcategory or item."""

    code: str
    name: str
    category: str
    display_order: int
    values: dict[str, float]
    total: float
    level: int
    subcategory: str | None = None
    is_section: bool = False
    is_subcategory: bool = False
    is_computed: bool = False
    computation_formula: str | None = None
    items: list[ActivityRow] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "subcategory": self.subcategory,
            "displayOrder": self.display_order,
            "isSection": self.is_section,
            "isSubcategory": self.is_subcategory,
            "isComputed": self.is_computed,
            "computationFormula": self.computation_formula,
            "values": dict(self.values),
            "total": self.total,
            "level": self.level,
        }
        if self.items is not None:
            payload["items"] = [item.to_dict() for item in self.items]
        return payload


# ---------------------------------------------------------------------------
# Execution entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExecutionEntry:
    """One facility's execution record for a reporting period."""

    id: int
    facility_id: int
    form_data: Mapping[str, Any]
    facility_name: str = "Unknown"
    facility_type: str = "unknown"
    project_type: str = "unknown"
    district_id: int | None = None
    year: int | None = None
    quarter: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Form data normalization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivitiesByCode:
    """``formData.activities`` stored as an object keyed by activity code."""

    activities: Mapping[str, Any]


@dataclass(frozen=True)
class ActivityList:
    """``formData.activities`` stored as a list of objects carrying ``code``."""

    activities: list[Any]


FormActivities = ActivitiesByCode | ActivityList | None


def parse_form_activities(form_data: Any) -> FormActivities:
    """Tag the shape of ``form_data["activities"]``; ``None`` when absent."""
    if not isinstance(form_data, Mapping):
        return None
    raw = form_data.get("activities")
    if isinstance(raw, Mapping):
        return ActivitiesByCode(raw)
    if isinstance(raw, list):
        return ActivityList(raw)
    return None


def normalize_activities(form_data: Any) -> dict[str, Any]:
    """
    Return a ``code → activity`` mapping regardless of the stored shape.

    List items without a ``code`` are dropped. Keyed objects keep their keys
    as-is, even when the nested object has no ``code`` of its own.
    """
    parsed = parse_form_activities(form_data)
    if isinstance(parsed, ActivitiesByCode):
        return dict(parsed.activities)
    if isinstance(parsed, ActivityList):
        return {
            item["code"]: item
            for item in parsed.activities
            if isinstance(item, Mapping) and item.get("code")
        }
    return {}
