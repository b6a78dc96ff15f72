"""
tests/test_dashboard.py

Tests for the dashboard orchestrator and its component handlers.

Coverage
--------
- Results keyed by component, in request order, duplicates collapsed
- Unknown and failing components are isolated from the others
- Reporting period resolution failures abort the whole request
- Every store opened for the request is closed
- Approval and task components
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from app.config import DashboardSettings
from app.domain.cancellation import CancellationToken
from app.domain.errors import ReportingPeriodNotFoundError, ScopeValidationError, UnknownComponentError
from app.domain.scope import ScopeFilter, UserContext
from app.services.dashboard_components import DashboardComponents
from app.services.dashboard_orchestrator import DashboardOrchestrator, ReportingPeriodCache

SETTINGS = DashboardSettings(max_workers=4, component_timeout_seconds=0)


def _plan(value: float) -> dict:
    return {"activities": {"P_1": {"total_budget": value}}}


@pytest.fixture()
def entries(entry_factory, malaria_project) -> list:
    return [
        entry_factory(1, 1, _plan(1000), entity_type="planning", approvedBy="u-9", approvedAt="2025-01-02"),
        entry_factory(2, 2, _plan(500), entity_type="planning", project=malaria_project),
        entry_factory(3, 3, _plan(700), entity_type="planning", approval_status="PENDING"),
        entry_factory(4, 2, _plan(200), entity_type="planning", approval_status="REJECTED"),
        entry_factory(5, 1, {"rollups": {"bySection": {"A": {"total": 250}}}}, quarter=1),
        entry_factory(6, 1, {"rollups": {"bySection": {"A": {"total": 250}}}}, quarter=2),
    ]


@pytest.fixture()
def opened() -> list:
    """Every store handed out by the orchestrator's factory."""
    return []


@pytest.fixture()
def orchestrator(store_factory, entries, opened) -> DashboardOrchestrator:
    def factory():
        built = store_factory(entries=entries)
        opened.append(built)
        return built

    return DashboardOrchestrator(factory, settings=SETTINGS)


class TestDashboardOrchestrator:
    def test_unknown_component_is_isolated(self, orchestrator, admin: UserContext) -> None:
        result = orchestrator.get_dashboard_data(["metrics", "bogus"], ScopeFilter(scope="country"), admin)

        assert result["bogus"] == {"error": True, "message": "Unknown component: bogus"}
        assert result["metrics"]["data"] == {
            "totalAllocated": 1500,
            "totalSpent": 500,
            "remaining": 1000,
            "utilizationPercentage": 33.33,
        }

    def test_request_order_and_duplicates(self, orchestrator, admin: UserContext) -> None:
        result = orchestrator.get_dashboard_data(
            ["tasks", "metrics", "tasks", "programDistribution"], ScopeFilter(scope="country"), admin
        )
        assert list(result) == ["tasks", "metrics", "programDistribution"]

    def test_every_store_is_closed(self, orchestrator, opened: list, admin: UserContext) -> None:
        orchestrator.get_dashboard_data(["metrics", "tasks", "bogus"], ScopeFilter(scope="country"), admin)
        # One setup store plus one per known component.
        assert len(opened) == 3
        assert all(store.closed == 1 for store in opened)

    def test_failing_component_is_isolated(self, store_factory, entries, admin: UserContext) -> None:
        class BrokenMetrics(DashboardComponents):
            def metrics(self, filters: ScopeFilter, user: UserContext) -> dict[str, Any]:
                raise RuntimeError("metrics exploded")

        orchestrator = DashboardOrchestrator(
            lambda: store_factory(entries=entries), settings=SETTINGS, components_factory=BrokenMetrics
        )
        result = orchestrator.get_dashboard_data(
            ["metrics", "programDistribution"], ScopeFilter(scope="country"), admin
        )

        assert result["metrics"] == {"error": True, "message": "metrics exploded"}
        assert "data" in result["programDistribution"]

    def test_missing_period(self, orchestrator, admin: UserContext) -> None:
        with pytest.raises(ReportingPeriodNotFoundError, match="Reporting period 99 not found"):
            orchestrator.get_dashboard_data(["metrics"], ScopeFilter(period_id=99), admin)

    def test_no_active_period(self, store_factory, admin: UserContext) -> None:
        orchestrator = DashboardOrchestrator(lambda: store_factory(periods=()), settings=SETTINGS)
        with pytest.raises(ReportingPeriodNotFoundError, match="No active reporting period found"):
            orchestrator.get_dashboard_data(["metrics"], ScopeFilter(), admin)

    def test_invalid_filters(self, orchestrator, admin: UserContext) -> None:
        with pytest.raises(ScopeValidationError):
            orchestrator.get_dashboard_data(["metrics"], ScopeFilter(scope="district"), admin)

    def test_cancelled_request_reports_component_errors(self, orchestrator, admin: UserContext) -> None:
        token = CancellationToken()
        token.cancel()
        result = orchestrator.get_dashboard_data(
            ["metrics", "tasks"], ScopeFilter(scope="country"), admin, token=token
        )
        assert all(value["error"] is True for value in result.values())

    def test_user_scope_narrowing(self, orchestrator, accountant: UserContext) -> None:
        # Facility 3's plan is pending, so only facilities 1 and 2 count.
        result = orchestrator.get_dashboard_data(["metrics"], ScopeFilter(), accountant)
        assert result["metrics"]["data"]["totalAllocated"] == 1500


class TestReportingPeriodCache:
    def test_active_period_is_cached(self, store) -> None:
        cache = ReportingPeriodCache(store)
        assert cache.get(None).id == 1
        store.periods.clear()
        assert cache.get(None).id == 1

    def test_missing_period_is_none(self, store) -> None:
        assert ReportingPeriodCache(store).get(42) is None


@pytest.fixture()
def components(store_factory, entries) -> DashboardComponents:
    store = store_factory(entries=entries)
    period = store.get_reporting_period(1)
    return DashboardComponents(store, period, today=lambda: date(2025, 6, 20))


class TestDashboardComponents:
    def test_unknown_handler(self, components: DashboardComponents) -> None:
        with pytest.raises(UnknownComponentError, match="Unknown component: nope"):
            components.handler("nope")

    def test_budget_by_district_requires_province_scope(self, components, admin: UserContext) -> None:
        assert components.budget_by_district(ScopeFilter(scope="district", scope_id=20), admin) == {
            "districts": []
        }

    def test_budget_by_district(self, components, admin: UserContext) -> None:
        rows = components.budget_by_district(ScopeFilter(scope="province", scope_id=1), admin)["districts"]
        assert [(r["districtId"], r["allocated"]) for r in rows] == [(10, 1000), (20, 500)]

    def test_province_approvals(self, components, admin: UserContext) -> None:
        rows = components.province_approvals(ScopeFilter(scope="province", scope_id=1), admin)["districts"]
        south = next(r for r in rows if r["districtId"] == 20)
        assert (south["approvedCount"], south["rejectedCount"], south["pendingCount"]) == (1, 1, 1)
        assert south["totalCount"] == 3
        assert south["approvalRate"] == 33.33
        assert south["allocatedBudget"] == 1400

    def test_province_approvals_without_access(self, components, accountant: UserContext) -> None:
        result = components.province_approvals(ScopeFilter(scope="province", scope_id=2), accountant)
        assert result == {"districts": []}

    def test_district_approvals(self, components, accountant: UserContext) -> None:
        rows = components.district_approvals(ScopeFilter(scope="district", scope_id=20), accountant)["facilities"]
        assert [(r["facilityId"], r["approvalStatus"]) for r in rows] == [
            (2, "APPROVED"),
            (3, "PENDING"),
            (2, "REJECTED"),
        ]
        assert rows[0]["projectName"] == "Malaria Program"
        assert rows[0]["facilityName"] == "Beta Hospital"

    def test_district_approvals_carry_approval_metadata(self, components, admin: UserContext) -> None:
        rows = components.district_approvals(ScopeFilter(scope="district", scope_id=10), admin)["facilities"]
        assert (rows[0]["approvedBy"], rows[0]["approvedAt"]) == ("u-9", "2025-01-02")

    def test_tasks(self, components, admin: UserContext) -> None:
        tasks = components.tasks(ScopeFilter(facility_ids=(1, 2)), admin)

        assert [p["projectId"] for p in tasks["pendingPlans"]] == []
        assert [(e["projectId"], e["quarter"]) for e in tasks["pendingExecutions"]] == [(100, 3), (200, 1)]
        assert tasks["correctionsRequired"] == []
        deadline = tasks["upcomingDeadlines"][0]
        assert deadline["daysRemaining"] == 10
        assert deadline["endDate"] == "2025-06-30"

    def test_tasks_pending_plan(self, store_factory, admin: UserContext) -> None:
        store = store_factory()
        period = store.get_reporting_period(1)
        components = DashboardComponents(store, period, today=lambda: date(2026, 1, 1))

        tasks = components.tasks(ScopeFilter(facility_ids=(1, 2)), admin)

        assert [p["projectId"] for p in tasks["pendingPlans"]] == [100, 200]
        assert tasks["pendingExecutions"] == []
        assert tasks["upcomingDeadlines"][0]["daysRemaining"] == 0
