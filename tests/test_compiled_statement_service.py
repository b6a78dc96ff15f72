"""
tests/test_compiled_statement_service.py

End-to-end tests of the compiled statement pipeline over an in-memory store.

Coverage
--------
- Mixed facility types aggregated through the unified catalog
- VAT-exclusive amounts for VAT-applicable expenses
- Computed sections per facility column
- Access denial, empty results and missing project type
- facility_type / year filters and the performance warning
- Stock rows carried through the pipeline total their closing quarter
"""

from __future__ import annotations

from typing import Any

import pytest

from app.config import StatementSettings
from app.domain.errors import ScopeAccessDeniedError, ScopeValidationError
from app.domain.scope import UserContext
from app.services.compiled_statement_service import (
    CompiledStatementRequest,
    CompiledStatementService,
)

SETTINGS = StatementSettings(performance_warning_threshold=100, timeout_seconds=0)


def _activities(**values: dict[str, Any]) -> dict[str, Any]:
    return {"activities": {code: {"code": code, **quarters} for code, quarters in values.items()}}


@pytest.fixture()
def statement_store(store_factory, entry_factory, hospital_catalog, health_center_catalog):
    entries = [
        entry_factory(
            1,
            1,
            _activities(
                H_A_1={"q1": 100, "q2": 200},
                H_A_2={"q1": 300, "q2": 400},
                H_B_1={"q1": 150},
                H_B_2={"q1": 118, "netAmount": {"q1": 100}},
                H_D_1={"q1": 500},
                H_E_1={"q1": 100},
            ),
        ),
        entry_factory(
            2,
            3,
            _activities(HC_A_1={"q1": 60}, HC_B_1={"q1": 20}, HC_D_1={"q1": 40}),
        ),
    ]
    return store_factory(
        entries=entries,
        catalogs={("HIV", "hospital"): hospital_catalog, ("HIV", "health_center"): health_center_catalog},
        subcategory_names={("HIV", "health_center"): {"B-01": "Salaries and bonus"}},
    )


def _section(statement, code: str):
    return next(row for row in statement.activities if row.code == code)


class TestCompile:
    def test_mixed_facility_types(self, statement_store, admin: UserContext) -> None:
        service = CompiledStatementService(statement_store, settings=SETTINGS)
        statement = service.compile(
            CompiledStatementRequest(scope="province", scope_id=1, project_type="HIV", period_id=1), admin
        )

        assert [(c["id"], c["facilityType"]) for c in statement.facilities] == [
            (1, "hospital"),
            (3, "health_center"),
        ]
        assert statement_store.catalog_requests == [("HIV", "health_center"), ("HIV", "hospital")]
        assert _section(statement, "A").values == {"1": 1000, "3": 60}
        assert _section(statement, "C").values == {"1": 750, "3": 40}
        assert _section(statement, "F").values == {"1": 400, "3": 40}

    def test_vat_expense_uses_net_amount(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="province", scope_id=1, project_type="HIV"), admin
        )
        overheads = next(item for item in _section(statement, "B").items or [] if item.code == "B-04")
        assert overheads.values["1"] == 100

    def test_subcategory_names_from_store(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="province", scope_id=1, project_type="HIV"), admin
        )
        salaries = next(item for item in _section(statement, "B").items or [] if item.code == "B-01")
        assert salaries.name == "Salaries and bonus"

    def test_totals_and_payload(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="province", scope_id=1, project_type="HIV", period_id=1), admin
        )
        payload = statement.to_dict()

        assert payload["data"]["totals"]["grandTotal"] == sum(statement.by_facility.values())
        assert [s["code"] for s in payload["data"]["sections"]] == ["A", "B", "C", "D", "E", "F"]
        assert payload["meta"]["facilityCount"] == 2
        assert payload["meta"]["reportingPeriod"] == "Period 1"
        assert payload["meta"]["filters"]["scopeId"] == 1
        assert payload["meta"]["performanceWarning"] is None

    def test_access_denied(self, statement_store, accountant: UserContext) -> None:
        service = CompiledStatementService(statement_store, settings=SETTINGS)
        with pytest.raises(ScopeAccessDeniedError, match="Access denied to district 30"):
            service.compile(CompiledStatementRequest(scope="district", scope_id=30), accountant)

    def test_no_data_is_empty_statement(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="facility", scope_id=5, year=2025), admin
        )
        payload = statement.to_dict()
        assert payload["data"]["activities"] == []
        assert payload["data"]["totals"] == {"byFacility": {}, "grandTotal": 0}
        assert payload["meta"]["reportingPeriod"] == "2025"

    def test_year_filter(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="province", scope_id=1, project_type="HIV", year=2024), admin
        )
        assert statement.facilities == []

    def test_facility_type_filter(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(
                scope="province", scope_id=1, project_type="HIV", facility_type="hospital"
            ),
            admin,
        )
        assert [c["id"] for c in statement.facilities] == [1]
        assert statement_store.catalog_requests == [("HIV", "hospital")]

    def test_project_type_from_entries(self, statement_store, admin: UserContext) -> None:
        statement = CompiledStatementService(statement_store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="province", scope_id=1), admin
        )
        assert {c["projectType"] for c in statement.facilities} == {"HIV"}

    def test_missing_project_type(self, store_factory, entry_factory, admin: UserContext) -> None:
        store = store_factory(entries=[entry_factory(1, 1, _activities(X={"q1": 1}), project=None)])
        with pytest.raises(ScopeValidationError, match="project type"):
            CompiledStatementService(store, settings=SETTINGS).compile(
                CompiledStatementRequest(scope="facility", scope_id=1), admin
            )

    def test_performance_warning(self, statement_store, admin: UserContext) -> None:
        settings = StatementSettings(performance_warning_threshold=1, timeout_seconds=0)
        statement = CompiledStatementService(statement_store, settings=settings).compile(
            CompiledStatementRequest(scope="province", scope_id=1, project_type="HIV"), admin
        )
        assert statement.performance_warning is not None
        assert statement.performance_warning.startswith("Large dataset (2 facilities)")

    def test_invalid_activities_are_reported(
        self, store_factory, entry_factory, hospital_catalog, admin: UserContext
    ) -> None:
        form = {"activities": [{"code": "H_A_1", "q1": 10}, {"q1": 99}]}
        store = store_factory(
            entries=[entry_factory(1, 1, form)],
            catalogs={("HIV", "hospital"): hospital_catalog},
        )
        statement = CompiledStatementService(store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="facility", scope_id=1, project_type="HIV"), admin
        )
        assert statement.warnings == ["Facility Alpha Hospital: Filtered out 1 invalid activities"]
        assert _section(statement, "A").values == {"1": 10}

    def test_stock_rows_total_the_closing_quarter(
        self, store_factory, entry_factory, hospital_catalog, admin: UserContext
    ) -> None:
        form = _activities(
            H_A_1={"q1": 100},
            H_D_1={"q1": 500, "q2": 650, "q3": 700, "cumulative_balance": 700},
            H_E_1={"q1": 100, "q2": 80, "cumulative_balance": 80},
        )
        store = store_factory(
            entries=[entry_factory(1, 1, form)],
            catalogs={("HIV", "hospital"): hospital_catalog},
        )
        statement = CompiledStatementService(store, settings=SETTINGS).compile(
            CompiledStatementRequest(scope="facility", scope_id=1, project_type="HIV"), admin
        )

        assets, liabilities = _section(statement, "D"), _section(statement, "E")
        assert [item.values for item in assets.items or []] == [{"1": 700}]
        assert assets.values == {"1": 700}
        assert liabilities.values == {"1": 80}
        assert _section(statement, "F").values == {"1": 620}
