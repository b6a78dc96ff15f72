"""
app/services/budget_calculations.py

Budget metrics derived from planning and execution form data.

Planning payload
    ``{"activities": {key: {"total_budget": number}}}`` (or a list of
    activity objects). Per activity the first numeric field among
    ``total_budget``, ``budget``, ``amount`` counts.
Execution payload
    ``{"rollups": {"bySection": {key: {"total": number}}}}``. Without
    rollups, per activity the first numeric field among
    ``cumulative_balance``, ``spent``, ``executed`` counts.

Non-numeric values are ignored rather than coerced.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Final

from app.domain.scope import FormDataEntry

ALLOCATED_FIELDS: Final[tuple[str, ...]] = ("total_budget", "budget", "amount")
SPENT_FIELDS: Final[tuple[str, ...]] = ("cumulative_balance", "spent", "executed")


@dataclass(frozen=True)
class BudgetMetrics:
    allocated: float
    spent: float
    remaining: float
    utilization_percentage: float

    def to_dict(self) -> dict[str, float]:
        return {
            "allocated": self.allocated,
            "spent": self.spent,
            "remaining": self.remaining,
            "utilizationPercentage": self.utilization_percentage,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _activity_values(form_data: Mapping[str, Any]) -> list[Any]:
    activities = form_data.get("activities")
    if isinstance(activities, Mapping):
        return list(activities.values())
    if isinstance(activities, list):
        return activities
    return []


def _first_number(activity: Any, fields: tuple[str, ...]) -> float:
    if not isinstance(activity, Mapping):
        return 0.0
    for name in fields:
        value = activity.get(name)
        if _is_number(value):
            return float(value)
    return 0.0


def entry_allocated_budget(form_data: Any) -> float:
    """Allocated budget of a single planning payload."""
    if not isinstance(form_data, Mapping):
        return 0.0
    return sum(_first_number(activity, ALLOCATED_FIELDS) for activity in _activity_values(form_data))


def entry_spent_budget(form_data: Any) -> float:
    """Spent budget of a single execution payload."""
    if not isinstance(form_data, Mapping):
        return 0.0

    rollups = form_data.get("rollups")
    by_section = rollups.get("bySection") if isinstance(rollups, Mapping) else None
    if by_section:
        sections = by_section.values() if isinstance(by_section, Mapping) else by_section
        return sum(
            float(section["total"])
            for section in sections
            if isinstance(section, Mapping) and _is_number(section.get("total"))
        )

    return sum(_first_number(activity, SPENT_FIELDS) for activity in _activity_values(form_data))


def calculate_allocated_budget(planning_entries: Iterable[FormDataEntry]) -> float:
    return sum(entry_allocated_budget(entry.form_data) for entry in planning_entries)


def calculate_spent_budget(execution_entries: Iterable[FormDataEntry]) -> float:
    return sum(entry_spent_budget(entry.form_data) for entry in execution_entries)


def calculate_utilization(allocated: float, spent: float) -> float:
    """``spent / allocated`` as a percentage rounded to 2 decimals; 0 when nothing is allocated."""
    if allocated == 0:
        return 0.0
    return round(spent / allocated * 100, 2)


def calculate_budget_metrics(
    planning_entries: Iterable[FormDataEntry],
    execution_entries: Iterable[FormDataEntry],
) -> BudgetMetrics:
    allocated = calculate_allocated_budget(planning_entries)
    spent = calculate_spent_budget(execution_entries)
    return BudgetMetrics(
        allocated=allocated,
        spent=spent,
        remaining=allocated - spent,
        utilization_percentage=calculate_utilization(allocated, spent),
    )
