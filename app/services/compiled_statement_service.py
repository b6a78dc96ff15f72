"""
app/services/compiled_statement_service.py

End-to-end pipeline for compiled execution statements.

Execution flow
--------------
1. Validate the filter and the caller's access to the requested scope.
2. Resolve the scope to facility ids and fetch execution entries.
3. Clean entries, load one activity catalog per facility type and unify them.
4. Aggregate with the multi-catalog path, fold in VAT receivables.
5. Compute surplus / net financial assets and build the statement tree.

An empty result set is a valid, empty statement rather than an error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.config import StatementSettings, get_statement_settings
from app.domain.activities import ActivityDefinition, ActivityRow, ExecutionEntry
from app.domain.cancellation import CancellationToken
from app.domain.errors import ScopeAccessDeniedError, ScopeValidationError
from app.domain.scope import FacilityInfo, ScopeFilter, UserContext
from app.logging_utils import log_aggregation_event
from app.repositories.store import EXECUTION, FacilityStore
from app.services.aggregation_service import AggregationService
from app.services.catalog_unifier import build_unified_catalog
from app.services.computed_values import ComputedValueCalculator
from app.services.hierarchy_builder import HierarchyBuilder
from app.services.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledStatementRequest:
    scope: str | None = None
    scope_id: int | None = None
    project_type: str | None = None
    facility_type: str | None = None
    period_id: int | None = None
    year: int | None = None
    quarter: int | None = None

    def to_scope_filter(self) -> ScopeFilter:
        return ScopeFilter(
            scope=self.scope,
            scope_id=self.scope_id,
            project_type=self.project_type,
            period_id=self.period_id,
            quarter=self.quarter,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "scopeId": self.scope_id,
            "projectType": self.project_type,
            "facilityType": self.facility_type,
            "reportingPeriodId": self.period_id,
            "year": self.year,
            "quarter": self.quarter,
        }


@dataclass(frozen=True)
class CompiledStatement:
    """Statement tree plus column, section and total summaries."""

    request: CompiledStatementRequest
    facilities: list[dict[str, Any]] = field(default_factory=list)
    activities: list[ActivityRow] = field(default_factory=list)
    by_facility: dict[str, float] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    performance_warning: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def sections(self) -> list[dict[str, Any]]:
        return [
            {
                "code": row.code,
                "name": row.name,
                "total": row.total,
                "isComputed": row.is_computed,
                "computationFormula": row.computation_formula,
            }
            for row in self.activities
            if row.is_section
        ]

    @property
    def grand_total(self) -> float:
        return sum(self.by_facility.values())

    def to_dict(self) -> dict[str, Any]:
        request = self.request
        if request.year is not None:
            period_label = str(request.year)
        elif request.period_id is not None:
            period_label = f"Period {request.period_id}"
        else:
            period_label = "All periods"

        return {
            "data": {
                "facilities": list(self.facilities),
                "activities": [row.to_dict() for row in self.activities],
                "sections": self.sections,
                "totals": {"byFacility": dict(self.by_facility), "grandTotal": self.grand_total},
            },
            "meta": {
                "filters": request.to_dict(),
                "aggregationDate": self.generated_at.isoformat(),
                "facilityCount": len(self.facilities),
                "reportingPeriod": period_label,
                "scope": request.scope,
                "performanceWarning": self.performance_warning,
                "warnings": list(self.warnings),
            },
        }


class CompiledStatementService:
    """
    Builds :class:`CompiledStatement` objects from a :class:`FacilityStore`.

    Usage::

        service = CompiledStatementService(store)
        statement = service.compile(CompiledStatementRequest(scope="district", scope_id=3), user)
    """

    def __init__(
        self,
        store: FacilityStore,
        *,
        settings: StatementSettings | None = None,
        aggregation: AggregationService | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_statement_settings()
        self._aggregation = aggregation or AggregationService()
        self._resolver = ScopeResolver(store)

    def compile(
        self,
        request: CompiledStatementRequest,
        user: UserContext,
        *,
        token: CancellationToken | None = None,
    ) -> CompiledStatement:
        """
        Run the full pipeline for *request* on behalf of *user*.

        Raises
        ------
        ScopeValidationError
            Malformed filter, or no project type can be determined for
            catalog loading.
        ScopeAccessDeniedError
            *user* cannot see the requested scope.
        CatalogLoadError
            A facility-type catalog could not be loaded.
        """
        started = time.perf_counter()
        filters = request.to_scope_filter().validate()
        if token is None and self._settings.timeout_seconds > 0:
            token = CancellationToken(self._settings.timeout_seconds)

        if not self._resolver.validate_scope_access(user, filters.scope, filters.scope_id):
            raise ScopeAccessDeniedError(
                f"Access denied to {filters.scope} {filters.scope_id}"
            )

        entries = self._fetch_execution_entries(request, user, token)
        if not entries:
            logger.info("No execution data for compiled statement filters %s", request.to_dict())
            return CompiledStatement(request=request)

        cleaned, warnings = self._aggregation.clean_entries(entries)
        project_type = request.project_type or next(
            (e.project_type for e in cleaned if e.project_type != "unknown"), None
        )
        if project_type is None:
            raise ScopeValidationError("Unable to determine project type for activity catalog")

        catalogs_by_type, subcategory_names = self._load_catalogs(
            cleaned, project_type, request.facility_type, token
        )
        facility_catalog_map: dict[str, list[ActivityDefinition]] = {}
        for entry in cleaned:
            catalog = catalogs_by_type.get(entry.facility_type)
            if catalog:
                facility_catalog_map[str(entry.facility_id)] = catalog
            else:
                logger.warning(
                    "No catalog found for facility %s (%s) with facility type %s, project type %s",
                    entry.facility_id, entry.facility_name, entry.facility_type, project_type,
                )

        unified = build_unified_catalog(catalogs_by_type)
        aggregated = self._aggregation.aggregate_with_multiple_catalogs(
            cleaned, facility_catalog_map, unified, token=token
        )
        aggregated = self._aggregation.apply_vat_receivables(aggregated, cleaned, unified)
        computed = ComputedValueCalculator().calculate(aggregated, unified)
        rows = HierarchyBuilder(subcategory_names).build(aggregated, computed, unified)

        columns = _facility_columns(cleaned)
        by_facility = {
            str(column["id"]): sum(
                row.values.get(str(column["id"]), 0.0) for row in rows if row.is_section
            )
            for column in columns
        }

        performance_warning = None
        if len(columns) > self._settings.performance_warning_threshold:
            performance_warning = (
                f"Large dataset ({len(columns)} facilities): "
                "Consider using filters to improve performance"
            )

        log_aggregation_event(
            logger,
            "compiled_statement",
            user=user,
            started=started,
            scope=request.scope,
            scope_id=request.scope_id,
            project_type=project_type,
            facility_types=sorted(catalogs_by_type),
            facilities=len(columns),
            unified_activities=len(unified),
            warnings=len(warnings),
        )

        return CompiledStatement(
            request=request,
            facilities=columns,
            activities=rows,
            by_facility=by_facility,
            performance_warning=performance_warning,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _fetch_execution_entries(
        self,
        request: CompiledStatementRequest,
        user: UserContext,
        token: CancellationToken | None,
    ) -> list[ExecutionEntry]:
        facility_ids = self._resolver.resolve(request.scope, request.scope_id, user)
        if token is not None:
            token.raise_if_cancelled()

        raw_entries = self._store.fetch_form_entries(
            EXECUTION,
            period_id=request.period_id,
            facility_ids=facility_ids,
            quarter=request.quarter,
        )
        if request.project_type is not None:
            raw_entries = [
                e for e in raw_entries
                if e.project is not None and e.project.project_type == request.project_type
            ]
        if request.year is not None:
            years = {
                period_id: period.year
                for period_id in {e.reporting_period_id for e in raw_entries}
                if (period := self._store.get_reporting_period(period_id)) is not None
            }
            raw_entries = [e for e in raw_entries if years.get(e.reporting_period_id) == request.year]

        facilities: dict[int, FacilityInfo] = {
            f.id: f for f in self._store.list_facilities({e.facility_id for e in raw_entries})
        }

        entries = []
        for raw in raw_entries:
            facility = facilities.get(raw.facility_id)
            facility_type = facility.facility_type if facility else "unknown"
            if request.facility_type is not None and facility_type != request.facility_type:
                continue
            entries.append(
                ExecutionEntry(
                    id=raw.id,
                    facility_id=raw.facility_id,
                    form_data=raw.form_data,
                    facility_name=facility.name if facility else "Unknown",
                    facility_type=facility_type,
                    project_type=raw.project.project_type if raw.project else "unknown",
                    district_id=facility.district_id if facility else None,
                    quarter=raw.quarter,
                    metadata=raw.metadata,
                )
            )
        return entries

    def _load_catalogs(
        self,
        entries: list[ExecutionEntry],
        project_type: str,
        facility_type: str | None,
        token: CancellationToken | None,
    ) -> tuple[dict[str, list[ActivityDefinition]], dict[str, str]]:
        if facility_type is not None:
            facility_types = [facility_type]
        else:
            facility_types = sorted({e.facility_type for e in entries if e.facility_type})

        catalogs: dict[str, list[ActivityDefinition]] = {}
        for each in facility_types:
            if token is not None:
                token.raise_if_cancelled()
            catalogs[each] = self._store.load_activity_catalog(project_type, each)

        subcategory_names: dict[str, str] = {}
        if facility_types:
            subcategory_names = self._store.load_subcategory_names(project_type, facility_types[0])
        return catalogs, subcategory_names


def _facility_columns(entries: list[ExecutionEntry]) -> list[dict[str, Any]]:
    columns: dict[int, dict[str, Any]] = {}
    for entry in entries:
        columns.setdefault(
            entry.facility_id,
            {
                "id": entry.facility_id,
                "name": entry.facility_name,
                "facilityType": entry.facility_type,
                "projectType": entry.project_type,
                "hasData": True,
            },
        )
    return [columns[facility_id] for facility_id in sorted(columns)]
