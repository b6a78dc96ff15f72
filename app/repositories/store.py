"""
app/repositories/store.py

Read-only query interface the aggregation engine depends on.

Services only talk to :class:`FacilityStore`; the SQLAlchemy implementation
lives in :mod:`app.repositories.sqlalchemy_store` and tests provide an
in-memory fake. Every method returns plain domain dataclasses, never ORM
rows, so results can cross thread boundaries safely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence

from app.domain.activities import ActivityDefinition
from app.domain.scope import (
    DistrictInfo,
    FacilityInfo,
    FormDataEntry,
    ProjectInfo,
    ReportingPeriod,
)

PLANNING = "planning"
EXECUTION = "execution"


class FacilityStore(ABC):
    """Queryable facility, form-data and catalog store."""

    # ------------------------------------------------------------------
    # Organization
    # ------------------------------------------------------------------

    @abstractmethod
    def list_facilities(self, facility_ids: Iterable[int] | None = None) -> list[FacilityInfo]:
        """All facilities, or only those in *facility_ids* when given."""

    @abstractmethod
    def list_facilities_in_districts(self, district_ids: Iterable[int]) -> list[FacilityInfo]:
        ...

    @abstractmethod
    def list_child_facilities(self, parent_facility_id: int) -> list[FacilityInfo]:
        ...

    @abstractmethod
    def get_facility(self, facility_id: int) -> FacilityInfo | None:
        ...

    @abstractmethod
    def list_districts(self, province_id: int) -> list[DistrictInfo]:
        ...

    @abstractmethod
    def get_district(self, district_id: int) -> DistrictInfo | None:
        ...

    # ------------------------------------------------------------------
    # Reporting periods and projects
    # ------------------------------------------------------------------

    @abstractmethod
    def get_reporting_period(self, period_id: int) -> ReportingPeriod | None:
        ...

    @abstractmethod
    def get_active_reporting_period(self) -> ReportingPeriod | None:
        """Most recent ``ACTIVE`` period by year, or ``None``."""

    @abstractmethod
    def list_active_projects(self, period_id: int) -> list[ProjectInfo]:
        ...

    # ------------------------------------------------------------------
    # Form data
    # ------------------------------------------------------------------

    @abstractmethod
    def fetch_form_entries(
        self,
        entity_type: str,
        *,
        period_id: int | None = None,
        facility_ids: Sequence[int] | None = None,
        quarter: int | None = None,
        approval_status: str | None = None,
    ) -> list[FormDataEntry]:
        """
        Planning or execution entries with their project attached.

        Parameters
        ----------
        entity_type:
            :data:`PLANNING` or :data:`EXECUTION`.
        facility_ids:
            ``None`` means no facility restriction; an empty sequence
            matches nothing.
        quarter:
            Compared against ``metadata.quarter``.
        """

    # ------------------------------------------------------------------
    # Activity catalogs
    # ------------------------------------------------------------------

    @abstractmethod
    def load_activity_catalog(self, project_type: str, facility_type: str) -> list[ActivityDefinition]:
        """Active execution activities for one ``(project_type, facility_type)``."""

    @abstractmethod
    def load_subcategory_names(self, project_type: str, facility_type: str) -> dict[str, str]:
        """``subcategory code → display name`` for active subcategories."""

    def close(self) -> None:
        """Release any underlying connection. No-op by default."""


StoreFactory = Callable[[], FacilityStore]
