"""
app/services package marker.
"""

from app.services.aggregation_service import AggregationService, sum_quarterly_values
from app.services.budget_aggregation_service import BudgetAggregationService
from app.services.compiled_statement_service import (
    CompiledStatement,
    CompiledStatementRequest,
    CompiledStatementService,
)
from app.services.computed_values import ComputedValueCalculator, calculate_computed_values
from app.services.dashboard_orchestrator import DashboardOrchestrator
from app.services.hierarchy_builder import HierarchyBuilder, build_hierarchical_structure
from app.services.scope_resolver import ScopeResolver

__all__ = [
    "AggregationService",
    "BudgetAggregationService",
    "CompiledStatement",
    "CompiledStatementRequest",
    "CompiledStatementService",
    "ComputedValueCalculator",
    "DashboardOrchestrator",
    "HierarchyBuilder",
    "ScopeResolver",
    "build_hierarchical_structure",
    "calculate_computed_values",
    "sum_quarterly_values",
]
