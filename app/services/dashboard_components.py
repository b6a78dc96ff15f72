"""
app/services/dashboard_components.py

Handlers for the individual dashboard components.

Each handler takes the role-narrowed :class:`ScopeFilter` (with
``period_id`` already resolved) and the caller's :class:`UserContext`, and
returns a JSON-ready dict. Handlers are independent of each other so the
orchestrator can run them concurrently, one store per handler.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import date
from typing import Any, Final

from app.domain.cancellation import CancellationToken
from app.domain.errors import UnknownComponentError
from app.domain.scope import FormDataEntry, ReportingPeriod, Scope, ScopeFilter, UserContext
from app.repositories.store import EXECUTION, PLANNING, FacilityStore
from app.services.budget_aggregation_service import BudgetAggregationService
from app.services.budget_calculations import entry_allocated_budget
from app.services.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)

ComponentHandler = Callable[[ScopeFilter, UserContext], dict[str, Any]]

COMPONENT_HANDLERS: Final[dict[str, str]] = {
    "metrics": "metrics",
    "programDistribution": "program_distribution",
    "budgetByDistrict": "budget_by_district",
    "budgetByFacility": "budget_by_facility",
    "provinceApprovals": "province_approvals",
    "districtApprovals": "district_approvals",
    "tasks": "tasks",
}

QUARTERS: Final[tuple[int, ...]] = (1, 2, 3, 4)


def _approval_rate(approved: int, total: int) -> float:
    return round(approved / total * 100, 2) if total > 0 else 0.0


class DashboardComponents:
    """
    Component handlers bound to one store and one reporting period.

    Parameters
    ----------
    store:
        Store dedicated to this handler invocation.
    period:
        Reporting period resolved once by the orchestrator.
    token:
        Cancellation token shared by every component of the request.
    today:
        Clock used for deadline arithmetic.
    """

    def __init__(
        self,
        store: FacilityStore,
        period: ReportingPeriod,
        *,
        token: CancellationToken | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._period = period
        self._token = token
        self._today = today
        self._resolver = ScopeResolver(store)
        self._budgets = BudgetAggregationService(store, token)

    @staticmethod
    def is_known(component: str) -> bool:
        return component in COMPONENT_HANDLERS

    def handler(self, component: str) -> ComponentHandler:
        """
        Return the bound handler for *component*.

        Raises
        ------
        UnknownComponentError
            No handler is registered under *component*.
        """
        method_name = COMPONENT_HANDLERS.get(component)
        if method_name is None:
            raise UnknownComponentError(component)
        return getattr(self, method_name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check(self) -> None:
        if self._token is not None:
            self._token.raise_if_cancelled()

    def _facility_ids(self, filters: ScopeFilter, user: UserContext) -> list[int]:
        if filters.facility_ids is not None:
            return list(filters.facility_ids)
        return self._resolver.resolve(filters.scope, filters.scope_id, user)

    def _scoped_planning_entries(
        self,
        filters: ScopeFilter,
        facility_ids: list[int],
    ) -> list[FormDataEntry]:
        self._check()
        entries = self._store.fetch_form_entries(
            PLANNING,
            period_id=self._period.id,
            facility_ids=facility_ids,
            quarter=filters.quarter,
        )
        if filters.project_type is not None:
            entries = [
                e for e in entries
                if e.project is not None and e.project.project_type == filters.project_type
            ]
        return entries

    # ------------------------------------------------------------------
    # Budget components
    # ------------------------------------------------------------------

    def metrics(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        facility_ids = self._facility_ids(filters, user)
        budget = self._budgets.aggregate_budget_data(
            facility_ids, self._period.id, filters.project_type, filters.quarter
        )
        logger.debug(
            "Metrics scope=%s scope_id=%s facilities=%d", filters.scope, filters.scope_id, len(facility_ids)
        )
        return {
            "totalAllocated": budget.allocated,
            "totalSpent": budget.spent,
            "remaining": budget.remaining,
            "utilizationPercentage": budget.utilization_percentage,
        }

    def program_distribution(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        programs = self._budgets.aggregate_by_program(
            self._facility_ids(filters, user), self._period.id, filters.quarter
        )
        return {"programs": programs, "total": sum(p["allocated"] for p in programs)}

    def budget_by_district(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        if filters.scope != Scope.PROVINCE or filters.scope_id is None:
            return {"districts": []}
        facility_ids = self._resolver.accessible_in_province(user, filters.scope_id)
        return {
            "districts": self._budgets.aggregate_by_district(
                filters.scope_id, facility_ids, self._period.id, filters.project_type, filters.quarter
            )
        }

    def budget_by_facility(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        if filters.scope != Scope.DISTRICT or filters.scope_id is None:
            return {"facilities": []}
        facility_ids = self._resolver.accessible_in_district(user, filters.scope_id)
        return {
            "facilities": self._budgets.aggregate_by_facility(
                filters.scope_id, facility_ids, self._period.id, filters.project_type, filters.quarter
            )
        }

    # ------------------------------------------------------------------
    # Approval components
    # ------------------------------------------------------------------

    def province_approvals(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        """Planning approval counts, rate and allocated budget per district of a province."""
        if filters.scope != Scope.PROVINCE or filters.scope_id is None:
            return {"districts": []}

        facility_ids = self._resolver.accessible_in_province(user, filters.scope_id)
        if not facility_ids:
            return {"districts": []}

        districts = self._store.list_districts(filters.scope_id)
        allowed = set(facility_ids)
        district_of: dict[int, int] = {
            f.id: f.district_id
            for f in self._store.list_facilities_in_districts([d.id for d in districts])
            if f.id in allowed and f.district_id is not None
        }

        entries_by_district: dict[int, list[FormDataEntry]] = defaultdict(list)
        for entry in self._scoped_planning_entries(filters, facility_ids):
            district_id = district_of.get(entry.facility_id)
            if district_id is not None:
                entries_by_district[district_id].append(entry)

        rows = []
        for district in districts:
            entries = entries_by_district.get(district.id, [])
            approved = sum(1 for e in entries if e.approval_status == "APPROVED")
            rejected = sum(1 for e in entries if e.approval_status == "REJECTED")
            pending = sum(1 for e in entries if e.approval_status in (None, "PENDING"))
            rows.append(
                {
                    "districtId": district.id,
                    "districtName": district.name,
                    "allocatedBudget": sum(entry_allocated_budget(e.form_data) for e in entries),
                    "approvedCount": approved,
                    "rejectedCount": rejected,
                    "pendingCount": pending,
                    "totalCount": len(entries),
                    "approvalRate": _approval_rate(approved, len(entries)),
                }
            )
        return {"districts": rows}

    def district_approvals(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        """Approval details for every planning entry in a district."""
        if filters.scope != Scope.DISTRICT or filters.scope_id is None:
            return {"facilities": []}

        facility_ids = self._resolver.accessible_in_district(user, filters.scope_id)
        if not facility_ids:
            return {"facilities": []}

        names = {f.id: f.name for f in self._store.list_facilities(facility_ids)}
        rows = []
        for entry in self._scoped_planning_entries(filters, facility_ids):
            project = entry.project
            metadata = entry.metadata or {}
            rows.append(
                {
                    "facilityId": entry.facility_id,
                    "facilityName": names.get(entry.facility_id, f"Facility {entry.facility_id}"),
                    "projectId": entry.project_id,
                    "projectName": project.name if project else f"Project {entry.project_id}",
                    "projectCode": project.code if project else "",
                    "allocatedBudget": entry_allocated_budget(entry.form_data),
                    "approvalStatus": entry.approval_status or "PENDING",
                    "approvedBy": metadata.get("approvedBy"),
                    "approvedAt": metadata.get("approvedAt"),
                    "quarter": metadata.get("quarter"),
                }
            )
        return {"facilities": rows}

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def tasks(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
        """
        Outstanding work for the period.

        ``pendingPlans`` lists active projects without a planning entry;
        ``pendingExecutions`` lists planned projects with fewer than four
        execution entries, pointing at the first quarter still missing.
        """
        facility_ids = (
            list(filters.facility_ids)
            if filters.facility_ids is not None
            else sorted(user.accessible_facility_ids)
        )
        allowed = set(facility_ids)
        period = self._period

        self._check()
        projects = [
            p for p in self._store.list_active_projects(period.id)
            if p.facility_id is not None and p.facility_id in allowed
        ]
        self._check()
        plans = self._store.fetch_form_entries(PLANNING, period_id=period.id, facility_ids=facility_ids)
        self._check()
        executions = self._store.fetch_form_entries(EXECUTION, period_id=period.id, facility_ids=facility_ids)

        planned_project_ids = {plan.project_id for plan in plans}
        executions_by_project: dict[int, list[FormDataEntry]] = defaultdict(list)
        for execution in executions:
            executions_by_project[execution.project_id].append(execution)

        deadline = period.end_date.isoformat()
        base = {"reportingPeriodId": period.id, "reportingPeriodYear": period.year, "deadline": deadline}

        pending_plans = [
            {
                "projectId": project.id,
                "projectName": project.name,
                "projectCode": project.code,
                **base,
                "status": "PENDING",
            }
            for project in projects
            if project.id not in planned_project_ids
        ]

        pending_executions = []
        for project in projects:
            if project.id not in planned_project_ids:
                continue
            project_executions = executions_by_project.get(project.id, [])
            if len(project_executions) >= len(QUARTERS):
                continue
            completed = {e.quarter for e in project_executions}
            next_quarter = next((q for q in QUARTERS if q not in completed), 1)
            pending_executions.append(
                {
                    "projectId": project.id,
                    "projectName": project.name,
                    "projectCode": project.code,
                    **base,
                    "quarter": next_quarter,
                    "status": "PENDING",
                }
            )

        upcoming_deadlines = [
            {
                "reportingPeriodId": period.id,
                "year": period.year,
                "periodType": period.period_type or "ANNUAL",
                "endDate": deadline,
                "daysRemaining": max(0, (period.end_date - self._today()).days),
            }
        ]

        return {
            "pendingPlans": pending_plans,
            "pendingExecutions": pending_executions,
            "correctionsRequired": [],
            "upcomingDeadlines": upcoming_deadlines,
        }
