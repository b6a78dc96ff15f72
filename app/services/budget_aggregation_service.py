"""
app/services/budget_aggregation_service.py

Budget roll-ups for the dashboard at country, district, facility and
program level.

Only ``APPROVED`` planning entries count towards allocated budget; every
execution entry counts towards spent budget. ``project_type`` is filtered on
the entry's project after loading, ``quarter`` on ``metadata.quarter`` in the
store query.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any

from app.domain.cancellation import CancellationToken
from app.domain.scope import FormDataEntry
from app.repositories.store import EXECUTION, PLANNING, FacilityStore
from app.services.budget_calculations import (
    BudgetMetrics,
    calculate_allocated_budget,
    calculate_budget_metrics,
)

logger = logging.getLogger(__name__)

APPROVED = "APPROVED"
UNKNOWN_PROGRAM = "unknown"


def _filter_project_type(entries: list[FormDataEntry], project_type: str | None) -> list[FormDataEntry]:
    if project_type is None:
        return entries
    return [e for e in entries if e.project is not None and e.project.project_type == project_type]


class BudgetAggregationService:
    """
    Aggregates planning and execution budgets for facility sets.

    Parameters
    ----------
    store:
        Store used for every query issued by this instance.
    token:
        Optional cancellation token, checked before each store query.
    """

    def __init__(self, store: FacilityStore, token: CancellationToken | None = None) -> None:
        self._store = store
        self._token = token

    def _check(self) -> None:
        if self._token is not None:
            self._token.raise_if_cancelled()

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_planning_entries(
        self,
        facility_ids: Sequence[int],
        period_id: int,
        project_type: str | None = None,
        quarter: int | None = None,
    ) -> list[FormDataEntry]:
        self._check()
        entries = self._store.fetch_form_entries(
            PLANNING,
            period_id=period_id,
            facility_ids=facility_ids,
            quarter=quarter,
            approval_status=APPROVED,
        )
        return _filter_project_type(entries, project_type)

    def fetch_execution_entries(
        self,
        facility_ids: Sequence[int],
        period_id: int,
        project_type: str | None = None,
        quarter: int | None = None,
    ) -> list[FormDataEntry]:
        self._check()
        entries = self._store.fetch_form_entries(
            EXECUTION,
            period_id=period_id,
            facility_ids=facility_ids,
            quarter=quarter,
        )
        return _filter_project_type(entries, project_type)

    # ------------------------------------------------------------------
    # Aggregations
    # ------------------------------------------------------------------

    def aggregate_budget_data(
        self,
        facility_ids: Sequence[int],
        period_id: int,
        project_type: str | None = None,
        quarter: int | None = None,
    ) -> BudgetMetrics:
        planning = self.fetch_planning_entries(facility_ids, period_id, project_type, quarter)
        execution = self.fetch_execution_entries(facility_ids, period_id, project_type, quarter)
        metrics = calculate_budget_metrics(planning, execution)
        logger.debug(
            "Budget metrics for %d facilities: allocated=%s spent=%s",
            len(facility_ids), metrics.allocated, metrics.spent,
        )
        return metrics

    def _metrics_by_facility(
        self,
        facility_ids: Sequence[int],
        period_id: int,
        project_type: str | None,
        quarter: int | None,
    ) -> dict[int, tuple[list[FormDataEntry], list[FormDataEntry]]]:
        planning = self.fetch_planning_entries(facility_ids, period_id, project_type, quarter)
        execution = self.fetch_execution_entries(facility_ids, period_id, project_type, quarter)

        grouped: dict[int, tuple[list[FormDataEntry], list[FormDataEntry]]] = defaultdict(
            lambda: ([], [])
        )
        for entry in planning:
            grouped[entry.facility_id][0].append(entry)
        for entry in execution:
            grouped[entry.facility_id][1].append(entry)
        return grouped

    def aggregate_by_district(
        self,
        province_id: int,
        facility_ids: Sequence[int],
        period_id: int,
        project_type: str | None = None,
        quarter: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        One row per district of *province_id*, sorted by allocated budget
        descending. Districts without accessible facilities report zeros.
        """
        self._check()
        districts = self._store.list_districts(province_id)
        allowed = set(facility_ids)
        facilities = [
            f for f in self._store.list_facilities_in_districts([d.id for d in districts])
            if f.id in allowed
        ]

        facilities_by_district: dict[int, list[int]] = defaultdict(list)
        for facility in facilities:
            if facility.district_id is not None:
                facilities_by_district[facility.district_id].append(facility.id)

        grouped = self._metrics_by_facility(
            [f.id for f in facilities], period_id, project_type, quarter
        )

        rows: list[dict[str, Any]] = []
        for district in districts:
            planning: list[FormDataEntry] = []
            execution: list[FormDataEntry] = []
            for facility_id in facilities_by_district.get(district.id, []):
                facility_planning, facility_execution = grouped.get(facility_id, ([], []))
                planning.extend(facility_planning)
                execution.extend(facility_execution)

            rows.append(
                {
                    "districtId": district.id,
                    "districtName": district.name,
                    **calculate_budget_metrics(planning, execution).to_dict(),
                }
            )

        rows.sort(key=lambda row: row["allocated"], reverse=True)
        return rows

    def aggregate_by_facility(
        self,
        district_id: int,
        facility_ids: Sequence[int],
        period_id: int,
        project_type: str | None = None,
        quarter: int | None = None,
    ) -> list[dict[str, Any]]:
        """One row per accessible facility of *district_id*, largest allocation first."""
        self._check()
        allowed = set(facility_ids)
        facilities = [
            f for f in self._store.list_facilities_in_districts([district_id]) if f.id in allowed
        ]
        grouped = self._metrics_by_facility(
            [f.id for f in facilities], period_id, project_type, quarter
        )

        rows = [
            {
                "facilityId": facility.id,
                "facilityName": facility.name,
                "facilityType": facility.facility_type,
                **calculate_budget_metrics(*grouped.get(facility.id, ([], []))).to_dict(),
            }
            for facility in facilities
        ]
        rows.sort(key=lambda row: row["allocated"], reverse=True)
        return rows

    def aggregate_by_program(
        self,
        facility_ids: Sequence[int],
        period_id: int,
        quarter: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Allocated budget per program (project type) with its share of the total.

        ``percentage`` is rounded to 2 decimals and 0 when nothing is allocated.
        """
        planning = self.fetch_planning_entries(facility_ids, period_id, quarter=quarter)

        by_program: dict[str, list[FormDataEntry]] = defaultdict(list)
        for entry in planning:
            program = entry.project.project_type if entry.project is not None else UNKNOWN_PROGRAM
            by_program[program].append(entry)

        programs = []
        for program_id, entries in by_program.items():
            first_project = entries[0].project
            programs.append(
                {
                    "programId": program_id,
                    "programName": first_project.name if first_project else f"Program {program_id}",
                    "allocated": calculate_allocated_budget(entries),
                }
            )

        total = sum(p["allocated"] for p in programs)
        for program in programs:
            program["percentage"] = round(program["allocated"] / total * 100, 2) if total > 0 else 0.0

        programs.sort(key=lambda p: p["allocated"], reverse=True)
        return programs
