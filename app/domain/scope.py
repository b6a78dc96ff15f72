"""
app/domain/scope.py

Organizational scope filters, user context and reporting periods.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Final

from app.domain.errors import ScopeValidationError


class Scope:
    COUNTRY = "country"
    PROVINCE = "province"
    DISTRICT = "district"
    FACILITY = "facility"


VALID_SCOPES: Final[frozenset[str]] = frozenset(
    {Scope.COUNTRY, Scope.PROVINCE, Scope.DISTRICT, Scope.FACILITY}
)


class Role:
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    HOSPITAL_ACCOUNTANT = "hospital_accountant"
    DISTRICT_ACCOUNTANT = "district_accountant"
    PROVINCIAL_ACCOUNTANT = "provincial_accountant"


ADMIN_ROLES: Final[frozenset[str]] = frozenset({Role.SUPERADMIN, Role.ADMIN})
ADMIN_PERMISSION: Final[str] = "admin_access"


@dataclass(frozen=True)
class UserContext:
    """
    Caller identity as produced by the external auth/session layer.

    Treated as read-only input: nothing in the aggregation engine mutates it.
    """

    user_id: str
    role: str
    accessible_facility_ids: frozenset[int] = frozenset()
    permissions: frozenset[str] = frozenset()
    facility_id: int | None = None
    district_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES or ADMIN_PERMISSION in self.permissions


@dataclass(frozen=True)
class ScopeFilter:
    """
    Dashboard / statement filter.

    ``facility_ids`` is filled by role-based narrowing; when present,
    component handlers use it instead of resolving the scope again.
    """

    scope: str | None = None
    scope_id: int | None = None
    project_type: str | None = None
    period_id: int | None = None
    quarter: int | None = None
    facility_ids: tuple[int, ...] | None = None

    def validate(self) -> ScopeFilter:
        """Raise :class:`ScopeValidationError` for malformed filters; return self."""
        if self.scope is not None and self.scope not in VALID_SCOPES:
            raise ScopeValidationError(
                f"Invalid scope '{self.scope}'. Allowed values: {sorted(VALID_SCOPES)}."
            )
        if self.scope is not None and self.scope != Scope.COUNTRY and self.scope_id is None:
            raise ScopeValidationError(f"scopeId is required for {self.scope} scope")
        if self.quarter is not None and self.quarter not in (1, 2, 3, 4):
            raise ScopeValidationError(f"quarter must be between 1 and 4, got {self.quarter}")
        return self

    def with_changes(self, **changes: object) -> ScopeFilter:
        return replace(self, **changes)


@dataclass(frozen=True)
class ReportingPeriod:
    id: int
    year: int
    end_date: date
    start_date: date | None = None
    period_type: str = "ANNUAL"
    status: str = "ACTIVE"


@dataclass(frozen=True)
class FacilityInfo:
    """Facility row as exposed by the store."""

    id: int
    name: str
    facility_type: str
    district_id: int | None = None
    parent_facility_id: int | None = None


@dataclass(frozen=True)
class DistrictInfo:
    id: int
    name: str
    province_id: int


@dataclass(frozen=True)
class ProjectInfo:
    id: int
    name: str
    code: str
    project_type: str
    facility_id: int | None = None
    status: str = "ACTIVE"


@dataclass(frozen=True)
class FormDataEntry:
    """
    Planning or execution form data for one facility, project and period.

    ``metadata`` carries approval details and the entry's ``quarter``.
    """

    id: int
    facility_id: int
    project_id: int
    reporting_period_id: int
    entity_type: str
    form_data: dict = field(default_factory=dict)
    approval_status: str | None = None
    metadata: dict = field(default_factory=dict)
    project: ProjectInfo | None = None

    @property
    def quarter(self) -> int | None:
        raw = (self.metadata or {}).get("quarter")
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None
