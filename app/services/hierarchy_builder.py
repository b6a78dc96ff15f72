"""
app/services/hierarchy_builder.py

Assembles the statement tree rendered by compiled reports.

Tree shape
----------
section (level 0)
    item (level 1)                       A, X, D, E, G and unsubcategorized B
    subcategory (level 1)                B only
        item (level 2)

Sections are emitted in the fixed order A, B, X, C, D, E, F, G. C and F are
computed rows without items. Every ``values`` mapping is keyed by facility id
and holds that facility's ``total`` for the row.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Final

from app.domain.activities import (
    NET_FINANCIAL_ASSETS_KEY,
    SECTION_CODES,
    SURPLUS_KEY,
    ActivityDefinition,
    ActivityRow,
    AggregatedData,
    ComputedValues,
    QuarterlyValues,
    is_total_row,
)
from app.services.computed_values import facility_ids_of

logger = logging.getLogger(__name__)

SECTION_NAMES: Final[dict[str, str]] = {
    "A": "Receipts",
    "B": "Expenditures",
    "X": "Miscellaneous Adjustments",
    "C": "Surplus / Deficit",
    "D": "Financial Assets",
    "E": "Financial Liabilities",
    "F": "Net Financial Assets",
    "G": "Closing Balance",
}

SECTION_DISPLAY_ORDER: Final[dict[str, int]] = {
    "A": 100,
    "B": 200,
    "X": 250,
    "C": 300,
    "D": 400,
    "E": 500,
    "F": 600,
    "G": 700,
}

SUBCATEGORY_NAMES: Final[dict[str, str]] = {
    "B-01": "Human Resources + Bonus",
    "B-02": "Monitoring & Evaluation",
    "B-03": "Living Support to Clients/Target Populations",
    "B-04": "Overheads (Use of goods & services)",
    "B-05": "Transfer to other reporting entities",
}

UNORDERED: Final[int] = 999

# Computed section → (computed key, minuend section, subtrahend section, formula)
_COMPUTED_SECTIONS: Final[dict[str, tuple[str, str, str, str]]] = {
    "C": (SURPLUS_KEY, "A", "B", "A - B"),
    "F": (NET_FINANCIAL_ASSETS_KEY, "D", "E", "D - E"),
}

_SURPLUS_ITEM_MARKER = "surplus/deficit of the period"
_TRAILING_DIGITS = re.compile(r"(\d+)$")


def section_display_order(section: str) -> int:
    return SECTION_DISPLAY_ORDER.get(section, UNORDERED)


def subcategory_display_order(subcategory: str) -> int:
    """``"B-03"`` → 3; codes without trailing digits sort last."""
    match = _TRAILING_DIGITS.search(subcategory)
    return int(match.group(1)) if match else UNORDERED


def subcategory_display_name(
    subcategory: str,
    overrides: Mapping[str, str] | None = None,
) -> str:
    if overrides and overrides.get(subcategory):
        return overrides[subcategory]
    return SUBCATEGORY_NAMES.get(subcategory, subcategory)


class HierarchyBuilder:
    """
    Builds ``list[ActivityRow]`` from aggregated and computed values.

    Parameters
    ----------
    subcategory_names:
        Optional ``subcategory code → display name`` overrides loaded from the
        store. Missing codes fall back to :data:`SUBCATEGORY_NAMES`, then to
        the raw code.
    """

    def __init__(self, subcategory_names: Mapping[str, str] | None = None) -> None:
        self._subcategory_names = dict(subcategory_names or {})

    def build(
        self,
        aggregated: AggregatedData,
        computed: ComputedValues,
        catalog: Sequence[ActivityDefinition],
    ) -> list[ActivityRow]:
        facility_ids = facility_ids_of(aggregated)
        sections: list[ActivityRow] = []
        rendered: dict[str, dict[str, float]] = {}

        for section in SECTION_CODES:
            if section in _COMPUTED_SECTIONS:
                sections.append(
                    self._computed_section(section, computed, rendered, facility_ids)
                )
                continue

            activities = [a for a in catalog if a.category == section and not a.is_section]
            if not activities:
                continue

            if section == "B":
                items = self._subcategorized_items(activities, aggregated, facility_ids)
            else:
                items = [
                    self._item_row(activity, aggregated, computed, facility_ids, level=1)
                    for activity in activities
                    if not is_total_row(activity.name)
                ]

            values = _sum_child_values(items, facility_ids)
            rendered[section] = values
            sections.append(
                ActivityRow(
                    code=section,
                    name=SECTION_NAMES[section],
                    category=section,
                    display_order=section_display_order(section),
                    values=values,
                    total=sum(values.values()),
                    level=0,
                    is_section=True,
                    items=items,
                )
            )

        logger.debug(
            "Built statement hierarchy: %d sections, %d facilities",
            len(sections), len(facility_ids),
        )
        return sections

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def _computed_section(
        self,
        section: str,
        computed: ComputedValues,
        rendered: Mapping[str, Mapping[str, float]],
        facility_ids: Sequence[str],
    ) -> ActivityRow:
        """
        Facilities missing from *computed* take the difference of the
        rendered minuend and subtrahend section values, so the row always
        agrees with the sections displayed above it.
        """
        key, minuend, subtrahend, formula = _COMPUTED_SECTIONS[section]
        by_facility = computed.get(key, {})

        values: dict[str, float] = {}
        for facility_id in facility_ids:
            computed_value = by_facility.get(facility_id)
            if computed_value is not None:
                values[facility_id] = computed_value.total
            else:
                left = rendered.get(minuend, {}).get(facility_id, 0.0)
                right = rendered.get(subtrahend, {}).get(facility_id, 0.0)
                values[facility_id] = left - right

        return ActivityRow(
            code=section,
            name=SECTION_NAMES[section],
            category=section,
            display_order=section_display_order(section),
            values=values,
            total=sum(values.values()),
            level=0,
            is_section=True,
            is_computed=True,
            computation_formula=formula,
            items=[],
        )

    def _item_row(
        self,
        activity: ActivityDefinition,
        aggregated: AggregatedData,
        computed: ComputedValues,
        facility_ids: Sequence[str],
        *,
        level: int,
    ) -> ActivityRow:
        if activity.category == "G" and _SURPLUS_ITEM_MARKER in activity.name.lower():
            surplus = computed.get(SURPLUS_KEY, {})
            values = {
                facility_id: surplus.get(facility_id, QuarterlyValues.zero()).total
                for facility_id in facility_ids
            }
            is_computed, formula = True, "A - B"
        else:
            by_facility = aggregated.get(activity.code, {})
            values = {
                facility_id: by_facility.get(facility_id, QuarterlyValues.zero()).total
                for facility_id in facility_ids
            }
            is_computed, formula = activity.is_computed, activity.computation_formula

        return ActivityRow(
            code=activity.code,
            name=activity.name,
            category=activity.category,
            subcategory=activity.subcategory,
            display_order=activity.display_order,
            values=values,
            total=sum(values.values()),
            level=level,
            is_computed=is_computed,
            computation_formula=formula,
        )

    def _subcategorized_items(
        self,
        activities: Sequence[ActivityDefinition],
        aggregated: AggregatedData,
        facility_ids: Sequence[str],
    ) -> list[ActivityRow]:
        subcategories = sorted(
            {a.subcategory for a in activities if a.subcategory},
            key=lambda code: (subcategory_display_order(code), code),
        )

        rows: list[ActivityRow] = []
        for subcategory in subcategories:
            children = [
                self._item_row(activity, aggregated, {}, facility_ids, level=2)
                for activity in activities
                if activity.subcategory == subcategory and not is_total_row(activity.name)
            ]
            values = _sum_child_values(children, facility_ids)
            rows.append(
                ActivityRow(
                    code=subcategory,
                    name=subcategory_display_name(subcategory, self._subcategory_names),
                    category="B",
                    subcategory=subcategory,
                    display_order=subcategory_display_order(subcategory),
                    values=values,
                    total=sum(values.values()),
                    level=1,
                    is_subcategory=True,
                    items=children,
                )
            )

        # Lines without a subcategory stay directly under the section.
        rows.extend(
            self._item_row(activity, aggregated, {}, facility_ids, level=1)
            for activity in activities
            if not activity.subcategory and not is_total_row(activity.name)
        )
        return rows


def _sum_child_values(rows: Sequence[ActivityRow], facility_ids: Sequence[str]) -> dict[str, float]:
    return {
        facility_id: sum(row.values.get(facility_id, 0.0) for row in rows)
        for facility_id in facility_ids
    }


def build_hierarchical_structure(
    aggregated: AggregatedData,
    computed: ComputedValues,
    catalog: Sequence[ActivityDefinition],
    subcategory_names: Mapping[str, str] | None = None,
) -> list[ActivityRow]:
    """Functional wrapper around :class:`HierarchyBuilder`."""
    return HierarchyBuilder(subcategory_names).build(aggregated, computed, catalog)
