"""
app/services/computed_values.py

Derived statement sections computed from aggregated activity data.

Formulas
--------
surplus               = A − B            (flow: quarter-wise, totals subtracted)
netFinancialAssets    = D − E            (stock: quarter-wise, but ``total`` is
                                          last_nonzero(D) − last_nonzero(E))

Section totals only include line items: section header rows and display
rows named ``"<Letter>. ..."`` already repeat an aggregate and are skipped.
Values are recomputed on every call and never persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Final

from app.domain.activities import (
    NET_FINANCIAL_ASSETS_KEY,
    SURPLUS_KEY,
    ActivityDefinition,
    AggregatedData,
    QuarterlyValues,
    is_total_row,
)
from app.services.aggregation_service import sum_quarterly_values

logger = logging.getLogger(__name__)

TOTALLED_SECTIONS: Final[tuple[str, ...]] = ("A", "B", "X", "D", "E", "G")


def facility_ids_of(aggregated: AggregatedData) -> list[str]:
    """Every facility id present in *aggregated*, in a stable sorted order."""
    ids: set[str] = set()
    for by_facility in aggregated.values():
        ids.update(by_facility.keys())
    return sorted(ids, key=lambda value: (len(value), value))


def section_line_items(
    catalog: Sequence[ActivityDefinition],
    section: str,
) -> list[ActivityDefinition]:
    """Catalog rows that contribute to *section*'s total."""
    return [
        activity
        for activity in catalog
        if activity.category == section and not activity.is_section and not is_total_row(activity.name)
    ]


def section_total(
    aggregated: AggregatedData,
    catalog: Sequence[ActivityDefinition],
    section: str,
    facility_id: str,
) -> QuarterlyValues:
    """Sum of *section*'s line items for one facility."""
    return sum_quarterly_values(
        aggregated.get(activity.code, {}).get(facility_id, QuarterlyValues.zero())
        for activity in section_line_items(catalog, section)
    )


def subtract(left: QuarterlyValues, right: QuarterlyValues) -> QuarterlyValues:
    return QuarterlyValues(
        q1=left.q1 - right.q1,
        q2=left.q2 - right.q2,
        q3=left.q3 - right.q3,
        q4=left.q4 - right.q4,
        total=left.total - right.total,
    )


class ComputedValueCalculator:
    """
    Computes ``surplus`` and ``netFinancialAssets`` per facility.

    Usage::

        computed = ComputedValueCalculator().calculate(aggregated, catalog)
        computed["surplus"]["12"].total
    """

    def calculate(
        self,
        aggregated: AggregatedData,
        catalog: Sequence[ActivityDefinition],
    ) -> dict[str, dict[str, QuarterlyValues]]:
        surplus: dict[str, QuarterlyValues] = {}
        net_assets: dict[str, QuarterlyValues] = {}

        for facility_id in facility_ids_of(aggregated):
            totals = {
                section: section_total(aggregated, catalog, section, facility_id)
                for section in TOTALLED_SECTIONS
            }
            receipts, expenditures = totals["A"], totals["B"]
            assets, liabilities = totals["D"], totals["E"]

            surplus[facility_id] = subtract(receipts, expenditures)

            quarterly = subtract(assets, liabilities)
            net_assets[facility_id] = QuarterlyValues(
                q1=quarterly.q1,
                q2=quarterly.q2,
                q3=quarterly.q3,
                q4=quarterly.q4,
                total=assets.last_nonzero_quarter() - liabilities.last_nonzero_quarter(),
            )

        logger.debug("Computed surplus and net financial assets for %d facilities", len(surplus))
        return {SURPLUS_KEY: surplus, NET_FINANCIAL_ASSETS_KEY: net_assets}


def calculate_computed_values(
    aggregated: AggregatedData,
    catalog: Sequence[ActivityDefinition],
) -> dict[str, dict[str, QuarterlyValues]]:
    return ComputedValueCalculator().calculate(aggregated, catalog)
