"""
tests/test_budget_calculations.py

Unit tests for budget metrics and budget roll-ups.

All tests are pure Python: an in-memory store, no database.

Coverage
--------
- Allocated budget field precedence and numeric-only values
- Spent budget from rollups, falling back to activity fields
- Utilization rounding and division by zero
- Only APPROVED planning entries count as allocated
- District, facility and program roll-ups
"""

from __future__ import annotations

import pytest

from app.domain.cancellation import CancellationToken
from app.domain.errors import AggregationCancelled
from app.services.budget_aggregation_service import BudgetAggregationService
from app.services.budget_calculations import (
    BudgetMetrics,
    calculate_budget_metrics,
    calculate_utilization,
    entry_allocated_budget,
    entry_spent_budget,
)


def _plan(*budgets: float) -> dict:
    return {"activities": {f"P_{i}": {"total_budget": value} for i, value in enumerate(budgets)}}


def _spent(total: float) -> dict:
    return {"rollups": {"bySection": {"A": {"total": total}}}}


class TestAllocatedBudget:
    def test_sums_total_budget(self) -> None:
        assert entry_allocated_budget(_plan(100, 250.5)) == 350.5

    def test_field_precedence(self) -> None:
        form = {
            "activities": [
                {"total_budget": 10, "budget": 99},
                {"budget": 20, "amount": 99},
                {"amount": 30},
            ]
        }
        assert entry_allocated_budget(form) == 60

    def test_non_numeric_values_are_ignored(self) -> None:
        form = {"activities": {"a": {"total_budget": "100"}, "b": {"total_budget": True}, "c": {"amount": 5}}}
        assert entry_allocated_budget(form) == 5

    @pytest.mark.parametrize("form", [None, {}, {"activities": None}, []])
    def test_unusable_payloads_are_zero(self, form: object) -> None:
        assert entry_allocated_budget(form) == 0


class TestSpentBudget:
    def test_rollups_win(self) -> None:
        form = {
            "rollups": {"bySection": {"A": {"total": 100}, "B": {"total": 50}}},
            "activities": {"x": {"cumulative_balance": 999}},
        }
        assert entry_spent_budget(form) == 150

    def test_falls_back_to_activity_fields(self) -> None:
        form = {
            "activities": {
                "x": {"cumulative_balance": 10, "spent": 99},
                "y": {"spent": 20},
                "z": {"executed": 30},
            }
        }
        assert entry_spent_budget(form) == 60

    def test_non_numeric_section_totals_are_ignored(self) -> None:
        assert entry_spent_budget({"rollups": {"bySection": {"A": {"total": "x"}, "B": {"total": 7}}}}) == 7


class TestUtilization:
    def test_rounded_to_two_decimals(self) -> None:
        assert calculate_utilization(3, 1) == 33.33

    def test_zero_allocated(self) -> None:
        assert calculate_utilization(0, 500) == 0

    def test_metrics(self, entry_factory) -> None:
        planning = [entry_factory(1, 1, _plan(1000), entity_type="planning")]
        execution = [entry_factory(2, 1, _spent(250))]
        assert calculate_budget_metrics(planning, execution) == BudgetMetrics(
            allocated=1000, spent=250, remaining=750, utilization_percentage=25.0
        )

    def test_metrics_to_dict(self) -> None:
        metrics = BudgetMetrics(allocated=10, spent=5, remaining=5, utilization_percentage=50.0)
        assert metrics.to_dict() == {
            "allocated": 10,
            "spent": 5,
            "remaining": 5,
            "utilizationPercentage": 50.0,
        }


@pytest.fixture()
def budget_store(store_factory, entry_factory, malaria_project):
    entries = [
        entry_factory(1, 1, _plan(1000), entity_type="planning"),
        entry_factory(2, 2, _plan(500), entity_type="planning"),
        entry_factory(3, 3, _plan(700), entity_type="planning", approval_status="PENDING"),
        entry_factory(4, 2, _plan(300), entity_type="planning", project=malaria_project),
        entry_factory(5, 1, _spent(400)),
        entry_factory(6, 2, _spent(100)),
        entry_factory(7, 2, _spent(50), project=malaria_project),
    ]
    return store_factory(entries=entries)


class TestBudgetAggregationService:
    def test_only_approved_plans_count(self, budget_store) -> None:
        metrics = BudgetAggregationService(budget_store).aggregate_budget_data([1, 2, 3], 1)
        assert metrics.allocated == 1800
        assert metrics.spent == 550

    def test_project_type_filter(self, budget_store) -> None:
        metrics = BudgetAggregationService(budget_store).aggregate_budget_data([1, 2, 3], 1, "HIV")
        assert (metrics.allocated, metrics.spent) == (1500, 500)

    def test_empty_facility_list(self, budget_store) -> None:
        metrics = BudgetAggregationService(budget_store).aggregate_budget_data([], 1)
        assert metrics == BudgetMetrics(0, 0, 0, 0)

    def test_by_district_sorted_by_allocation(self, budget_store) -> None:
        rows = BudgetAggregationService(budget_store).aggregate_by_district(1, [1, 2, 3, 4], 1)
        assert [(r["districtId"], r["allocated"]) for r in rows] == [(10, 1000), (20, 800)]
        assert rows[0]["districtName"] == "North"
        assert rows[1]["spent"] == 150

    def test_by_district_respects_facility_list(self, budget_store) -> None:
        rows = BudgetAggregationService(budget_store).aggregate_by_district(1, [1], 1)
        south = next(r for r in rows if r["districtId"] == 20)
        assert south["allocated"] == 0
        assert south["utilizationPercentage"] == 0

    def test_by_facility(self, budget_store) -> None:
        rows = BudgetAggregationService(budget_store).aggregate_by_facility(20, [2, 3], 1)
        assert [r["facilityId"] for r in rows] == [2, 3]
        assert rows[0]["facilityType"] == "hospital"
        assert rows[0]["allocated"] == 800
        assert rows[1]["allocated"] == 0

    def test_by_program(self, budget_store) -> None:
        programs = BudgetAggregationService(budget_store).aggregate_by_program([1, 2, 3], 1)
        assert [(p["programId"], p["allocated"], p["percentage"]) for p in programs] == [
            ("HIV", 1500, 83.33),
            ("Malaria", 300, 16.67),
        ]
        assert programs[0]["programName"] == "HIV Program"

    def test_cancelled_token(self, budget_store) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(AggregationCancelled):
            BudgetAggregationService(budget_store, token).aggregate_budget_data([1], 1)
