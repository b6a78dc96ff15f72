"""
app/repositories/sqlalchemy_store.py

:class:`~app.repositories.store.FacilityStore` backed by SQLAlchemy 2.0.

One instance wraps one :class:`~sqlalchemy.orm.Session`. Sessions are not
thread-safe, so concurrent dashboard components each build their own store
through :func:`session_store_factory`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.domain.activities import ActivityDefinition
from app.domain.errors import CatalogLoadError
from app.domain.scope import (
    DistrictInfo,
    FacilityInfo,
    FormDataEntry,
    ProjectInfo,
    ReportingPeriod,
)
from app.repositories.store import EXECUTION, FacilityStore, StoreFactory
from db.models.activity_catalog import ActivityCategory, DynamicActivity
from db.models.form_data_entry import FormDataEntry as FormDataEntryModel
from db.models.organization import District, Facility
from db.models.reporting_period import Project
from db.models.reporting_period import ReportingPeriod as ReportingPeriodModel

logger = logging.getLogger(__name__)


class SqlAlchemyFacilityStore(FacilityStore):
    """
    Read-only store over the ORM models.

    Parameters
    ----------
    session:
        Open session; closed by :meth:`close` only when *owns_session* is set.
    """

    def __init__(self, session: Session, *, owns_session: bool = False) -> None:
        self._session = session
        self._owns_session = owns_session

    # ------------------------------------------------------------------
    # Organization
    # ------------------------------------------------------------------

    def list_facilities(self, facility_ids: Iterable[int] | None = None) -> list[FacilityInfo]:
        stmt = select(Facility).order_by(Facility.id)
        if facility_ids is not None:
            ids = list(facility_ids)
            if not ids:
                return []
            stmt = stmt.where(Facility.id.in_(ids))
        return [_to_facility(row) for row in self._session.scalars(stmt)]

    def list_facilities_in_districts(self, district_ids: Iterable[int]) -> list[FacilityInfo]:
        ids = list(district_ids)
        if not ids:
            return []
        stmt = select(Facility).where(Facility.district_id.in_(ids)).order_by(Facility.id)
        return [_to_facility(row) for row in self._session.scalars(stmt)]

    def list_child_facilities(self, parent_facility_id: int) -> list[FacilityInfo]:
        stmt = (
            select(Facility)
            .where(Facility.parent_facility_id == parent_facility_id)
            .order_by(Facility.id)
        )
        return [_to_facility(row) for row in self._session.scalars(stmt)]

    def get_facility(self, facility_id: int) -> FacilityInfo | None:
        row = self._session.get(Facility, facility_id)
        return _to_facility(row) if row is not None else None

    def list_districts(self, province_id: int) -> list[DistrictInfo]:
        stmt = select(District).where(District.province_id == province_id).order_by(District.id)
        return [_to_district(row) for row in self._session.scalars(stmt)]

    def get_district(self, district_id: int) -> DistrictInfo | None:
        row = self._session.get(District, district_id)
        return _to_district(row) if row is not None else None

    # ------------------------------------------------------------------
    # Reporting periods and projects
    # ------------------------------------------------------------------

    def get_reporting_period(self, period_id: int) -> ReportingPeriod | None:
        row = self._session.get(ReportingPeriodModel, period_id)
        return _to_period(row) if row is not None else None

    def get_active_reporting_period(self) -> ReportingPeriod | None:
        stmt = (
            select(ReportingPeriodModel)
            .where(ReportingPeriodModel.status == "ACTIVE")
            .order_by(ReportingPeriodModel.year.desc())
            .limit(1)
        )
        row = self._session.scalars(stmt).first()
        return _to_period(row) if row is not None else None

    def list_active_projects(self, period_id: int) -> list[ProjectInfo]:
        stmt = (
            select(Project)
            .where(Project.reporting_period_id == period_id, Project.status == "ACTIVE")
            .order_by(Project.id)
        )
        return [_to_project(row) for row in self._session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Form data
    # ------------------------------------------------------------------

    def fetch_form_entries(
        self,
        entity_type: str,
        *,
        period_id: int | None = None,
        facility_ids: Sequence[int] | None = None,
        quarter: int | None = None,
        approval_status: str | None = None,
    ) -> list[FormDataEntry]:
        if facility_ids is not None and not facility_ids:
            return []

        stmt = (
            select(FormDataEntryModel)
            .options(selectinload(FormDataEntryModel.project))
            .where(FormDataEntryModel.entity_type == entity_type)
            .order_by(FormDataEntryModel.id)
        )
        if period_id is not None:
            stmt = stmt.where(FormDataEntryModel.reporting_period_id == period_id)
        if facility_ids is not None:
            stmt = stmt.where(FormDataEntryModel.facility_id.in_(list(facility_ids)))
        if approval_status is not None:
            stmt = stmt.where(FormDataEntryModel.approval_status == approval_status)
        if quarter is not None:
            stmt = stmt.where(FormDataEntryModel.metadata_json["quarter"].astext == str(quarter))

        entries = [_to_entry(row) for row in self._session.scalars(stmt)]
        logger.debug(
            "Fetched %d %s entries (period=%s, facilities=%s, quarter=%s)",
            len(entries), entity_type, period_id,
            "all" if facility_ids is None else len(facility_ids), quarter,
        )
        return entries

    # ------------------------------------------------------------------
    # Activity catalogs
    # ------------------------------------------------------------------

    def load_activity_catalog(self, project_type: str, facility_type: str) -> list[ActivityDefinition]:
        stmt = (
            select(DynamicActivity)
            .join(ActivityCategory, DynamicActivity.category_id == ActivityCategory.id)
            .where(
                DynamicActivity.project_type == project_type,
                DynamicActivity.facility_type == facility_type,
                DynamicActivity.module_type == EXECUTION,
                DynamicActivity.is_active.is_(True),
                ActivityCategory.is_active.is_(True),
            )
            .order_by(DynamicActivity.display_order, DynamicActivity.id)
        )
        try:
            rows = list(self._session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise CatalogLoadError(
                f"Failed to load activity catalog for facility type: {facility_type}, "
                f"project type: {project_type}"
            ) from exc
        return [_to_activity(row) for row in rows]

    def load_subcategory_names(self, project_type: str, facility_type: str) -> dict[str, str]:
        stmt = select(ActivityCategory.sub_category_code, ActivityCategory.name).where(
            ActivityCategory.module_type == EXECUTION,
            ActivityCategory.project_type == project_type,
            ActivityCategory.facility_type == facility_type,
            ActivityCategory.is_sub_category.is_(True),
            ActivityCategory.is_active.is_(True),
        )
        return {code: name for code, name in self._session.execute(stmt) if code}

    def close(self) -> None:
        if self._owns_session:
            self._session.close()


def session_store_factory(session_factory: Callable[[], Session]) -> StoreFactory:
    """
    Build a :data:`StoreFactory` that opens a fresh session per store.

    Used by the dashboard orchestrator so every concurrent component works
    on its own connection.
    """

    def factory() -> FacilityStore:
        return SqlAlchemyFacilityStore(session_factory(), owns_session=True)

    return factory


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _to_facility(row: Facility) -> FacilityInfo:
    return FacilityInfo(
        id=row.id,
        name=row.name,
        facility_type=row.facility_type,
        district_id=row.district_id,
        parent_facility_id=row.parent_facility_id,
    )


def _to_district(row: District) -> DistrictInfo:
    return DistrictInfo(id=row.id, name=row.name, province_id=row.province_id)


def _to_period(row: ReportingPeriodModel) -> ReportingPeriod:
    return ReportingPeriod(
        id=row.id,
        year=row.year,
        end_date=row.end_date,
        start_date=row.start_date,
        period_type=row.period_type,
        status=row.status,
    )


def _to_project(row: Project) -> ProjectInfo:
    return ProjectInfo(
        id=row.id,
        name=row.name,
        code=row.code,
        project_type=row.project_type,
        facility_id=row.facility_id,
        status=row.status,
    )


def _to_entry(row: FormDataEntryModel) -> FormDataEntry:
    return FormDataEntry(
        id=row.id,
        facility_id=row.facility_id,
        project_id=row.project_id,
        reporting_period_id=row.reporting_period_id,
        entity_type=row.entity_type,
        form_data=dict(row.form_data or {}),
        approval_status=row.approval_status,
        metadata=dict(row.metadata_json or {}),
        project=_to_project(row.project) if row.project is not None else None,
    )


def _to_activity(row: DynamicActivity) -> ActivityDefinition:
    mappings: dict[str, Any] = row.field_mappings or {}
    subcategory = mappings.get("subcategory") or None
    return ActivityDefinition(
        code=row.code,
        name=row.name,
        category=mappings.get("category") or "A",
        subcategory=subcategory,
        display_order=row.display_order,
        level=2 if subcategory else 1,
    )
