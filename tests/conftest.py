"""
tests/conftest.py

Shared fixtures: an in-memory FacilityStore and a small organization.

Organization
------------
province 1
    district 10  → facility 1 (hospital)
    district 20  → facilities 2 (hospital), 3 (health center, child of 2),
                   4 (health center)
province 2
    district 30  → facility 5 (hospital)

Reporting periods: 1 (2025, ACTIVE), 2 (2024, CLOSED).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import date
from typing import Any

import pytest

from app.domain.activities import ActivityDefinition
from app.domain.scope import (
    DistrictInfo,
    FacilityInfo,
    FormDataEntry,
    ProjectInfo,
    ReportingPeriod,
    UserContext,
)
from app.repositories.store import FacilityStore


class FakeFacilityStore(FacilityStore):
    """Dictionary-backed store; ``closed`` counts close() calls."""

    def __init__(
        self,
        *,
        facilities: Iterable[FacilityInfo] = (),
        districts: Iterable[DistrictInfo] = (),
        periods: Iterable[ReportingPeriod] = (),
        projects: Iterable[ProjectInfo] = (),
        entries: Iterable[FormDataEntry] = (),
        catalogs: dict[tuple[str, str], list[ActivityDefinition]] | None = None,
        subcategory_names: dict[tuple[str, str], dict[str, str]] | None = None,
    ) -> None:
        self.facilities = {f.id: f for f in facilities}
        self.districts = {d.id: d for d in districts}
        self.periods = {p.id: p for p in periods}
        self.projects = list(projects)
        self.entries = sorted(entries, key=lambda e: e.id)
        self.catalogs = catalogs or {}
        self.subcategory_names = subcategory_names or {}
        self.closed = 0
        self.catalog_requests: list[tuple[str, str]] = []

    def list_facilities(self, facility_ids: Iterable[int] | None = None) -> list[FacilityInfo]:
        if facility_ids is None:
            return [self.facilities[k] for k in sorted(self.facilities)]
        wanted = set(facility_ids)
        return [self.facilities[k] for k in sorted(self.facilities) if k in wanted]

    def list_facilities_in_districts(self, district_ids: Iterable[int]) -> list[FacilityInfo]:
        wanted = set(district_ids)
        return [f for f in self.list_facilities() if f.district_id in wanted]

    def list_child_facilities(self, parent_facility_id: int) -> list[FacilityInfo]:
        return [f for f in self.list_facilities() if f.parent_facility_id == parent_facility_id]

    def get_facility(self, facility_id: int) -> FacilityInfo | None:
        return self.facilities.get(facility_id)

    def list_districts(self, province_id: int) -> list[DistrictInfo]:
        return [self.districts[k] for k in sorted(self.districts) if self.districts[k].province_id == province_id]

    def get_district(self, district_id: int) -> DistrictInfo | None:
        return self.districts.get(district_id)

    def get_reporting_period(self, period_id: int) -> ReportingPeriod | None:
        return self.periods.get(period_id)

    def get_active_reporting_period(self) -> ReportingPeriod | None:
        active = [p for p in self.periods.values() if p.status == "ACTIVE"]
        return max(active, key=lambda p: p.year) if active else None

    def list_active_projects(self, period_id: int) -> list[ProjectInfo]:
        return [p for p in self.projects if p.status == "ACTIVE"]

    def fetch_form_entries(
        self,
        entity_type: str,
        *,
        period_id: int | None = None,
        facility_ids: Sequence[int] | None = None,
        quarter: int | None = None,
        approval_status: str | None = None,
    ) -> list[FormDataEntry]:
        allowed = set(facility_ids) if facility_ids is not None else None
        return [
            e
            for e in self.entries
            if e.entity_type == entity_type
            and (period_id is None or e.reporting_period_id == period_id)
            and (allowed is None or e.facility_id in allowed)
            and (quarter is None or e.quarter == quarter)
            and (approval_status is None or e.approval_status == approval_status)
        ]

    def load_activity_catalog(self, project_type: str, facility_type: str) -> list[ActivityDefinition]:
        self.catalog_requests.append((project_type, facility_type))
        return list(self.catalogs.get((project_type, facility_type), []))

    def load_subcategory_names(self, project_type: str, facility_type: str) -> dict[str, str]:
        return dict(self.subcategory_names.get((project_type, facility_type), {}))

    def close(self) -> None:
        self.closed += 1


# ---------------------------------------------------------------------------
# Organization data
# ---------------------------------------------------------------------------

FACILITIES = (
    FacilityInfo(id=1, name="Alpha Hospital", facility_type="hospital", district_id=10),
    FacilityInfo(id=2, name="Beta Hospital", facility_type="hospital", district_id=20),
    FacilityInfo(
        id=3, name="Gamma Health Center", facility_type="health_center",
        district_id=20, parent_facility_id=2,
    ),
    FacilityInfo(id=4, name="Delta Health Center", facility_type="health_center", district_id=20),
    FacilityInfo(id=5, name="Epsilon Hospital", facility_type="hospital", district_id=30),
)

DISTRICTS = (
    DistrictInfo(id=10, name="North", province_id=1),
    DistrictInfo(id=20, name="South", province_id=1),
    DistrictInfo(id=30, name="Lakeside", province_id=2),
)

PERIODS = (
    ReportingPeriod(id=1, year=2025, end_date=date(2025, 6, 30), start_date=date(2024, 7, 1)),
    ReportingPeriod(id=2, year=2024, end_date=date(2024, 6, 30), status="CLOSED"),
)

HIV_PROJECT = ProjectInfo(id=100, name="HIV Program", code="HIV-01", project_type="HIV", facility_id=1)
MALARIA_PROJECT = ProjectInfo(
    id=200, name="Malaria Program", code="MAL-01", project_type="Malaria", facility_id=2
)


def make_entry(
    entry_id: int,
    facility_id: int,
    form_data: dict[str, Any],
    *,
    entity_type: str = "execution",
    project: ProjectInfo | None = HIV_PROJECT,
    period_id: int = 1,
    approval_status: str | None = "APPROVED",
    quarter: int | None = None,
    **metadata: Any,
) -> FormDataEntry:
    if quarter is not None:
        metadata["quarter"] = quarter
    return FormDataEntry(
        id=entry_id,
        facility_id=facility_id,
        project_id=project.id if project else 0,
        reporting_period_id=period_id,
        entity_type=entity_type,
        form_data=form_data,
        approval_status=approval_status,
        metadata=metadata,
        project=project,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def entry_factory() -> Callable[..., FormDataEntry]:
    return make_entry


@pytest.fixture()
def hiv_project() -> ProjectInfo:
    return HIV_PROJECT


@pytest.fixture()
def malaria_project() -> ProjectInfo:
    return MALARIA_PROJECT


@pytest.fixture()
def store_factory() -> Callable[..., FakeFacilityStore]:
    """Build a FakeFacilityStore over the shared organization."""

    def build(**overrides: Any) -> FakeFacilityStore:
        params: dict[str, Any] = {
            "facilities": FACILITIES,
            "districts": DISTRICTS,
            "periods": PERIODS,
            "projects": (HIV_PROJECT, MALARIA_PROJECT),
        }
        params.update(overrides)
        return FakeFacilityStore(**params)

    return build


@pytest.fixture()
def store(store_factory: Callable[..., FakeFacilityStore]) -> FakeFacilityStore:
    return store_factory()


@pytest.fixture()
def admin() -> UserContext:
    return UserContext(user_id="admin-1", role="admin")


@pytest.fixture()
def accountant() -> UserContext:
    """Non-admin user who may see facilities 1, 2 and 3."""
    return UserContext(
        user_id="acct-1",
        role="accountant",
        accessible_facility_ids=frozenset({1, 2, 3}),
    )


@pytest.fixture()
def hospital_catalog() -> list[ActivityDefinition]:
    return [
        ActivityDefinition(code="H_A_1", name="Other Incomes", category="A", display_order=1),
        ActivityDefinition(code="H_A_2", name="Transfers from SPIU", category="A", display_order=2),
        ActivityDefinition(
            code="H_B_1", name="Salaries", category="B", subcategory="B-01", display_order=1, level=2
        ),
        ActivityDefinition(
            code="H_B_2", name="Fuel", category="B", subcategory="B-04", display_order=2, level=2
        ),
        ActivityDefinition(code="H_D_1", name="Cash at bank", category="D", display_order=1),
        ActivityDefinition(code="H_E_1", name="Payables", category="E", display_order=1),
    ]


@pytest.fixture()
def health_center_catalog() -> list[ActivityDefinition]:
    return [
        ActivityDefinition(code="HC_A_1", name="Other Incomes", category="A", display_order=1),
        ActivityDefinition(code="HC_A_2", name="Transfers from SPIU", category="A", display_order=2),
        ActivityDefinition(
            code="HC_B_1", name="Salaries", category="B", subcategory="B-01", display_order=1, level=2
        ),
        ActivityDefinition(code="HC_D_1", name="Cash at bank", category="D", display_order=1),
    ]
