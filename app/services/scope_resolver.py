"""
app/services/scope_resolver.py

Turns an organizational scope into the set of facility ids a user may see.

Resolution
----------
no scope   → the user's accessible facilities
country    → every facility (admins) / the accessible facilities (others)
province   → facilities in every district of the province
district   → facilities of the district
facility   → the facility plus its direct children

Non-admin results are intersected with ``UserContext.accessible_facility_ids``.
Admins (``admin``/``superadmin`` role or the ``admin_access`` permission)
bypass that filter but still go through scope resolution.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from app.domain.errors import ScopeValidationError
from app.domain.scope import VALID_SCOPES, Scope, UserContext
from app.repositories.store import FacilityStore

logger = logging.getLogger(__name__)


class ScopeResolver:
    """
    Scope → facility id resolution with access control.

    All returned lists are sorted ascending so repeated calls are
    deterministic.
    """

    def __init__(self, store: FacilityStore) -> None:
        self._store = store

    @property
    def store(self) -> FacilityStore:
        return self._store

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(
        self,
        scope: str | None,
        scope_id: int | None,
        user: UserContext,
    ) -> list[int]:
        """
        Resolve *scope* for *user*.

        Raises
        ------
        ScopeValidationError
            *scope_id* missing for province, district or facility scope, or
            an unrecognised scope.
        """
        if scope is None:
            return sorted(user.accessible_facility_ids)

        if scope == Scope.COUNTRY:
            if user.is_admin:
                return self.resolve_unrestricted(Scope.COUNTRY, None)
            return sorted(user.accessible_facility_ids)

        facility_ids = self.resolve_unrestricted(scope, scope_id)
        if user.is_admin:
            return facility_ids
        return self.filter_accessible(user, facility_ids)

    def resolve_unrestricted(self, scope: str, scope_id: int | None) -> list[int]:
        """Every facility in *scope*, ignoring the caller's access list."""
        if scope not in VALID_SCOPES:
            raise ScopeValidationError(
                f"Invalid scope '{scope}'. Allowed values: {sorted(VALID_SCOPES)}."
            )

        if scope == Scope.COUNTRY:
            return sorted(f.id for f in self._store.list_facilities())

        if scope_id is None:
            raise ScopeValidationError(f"scopeId is required for {scope} scope")

        if scope == Scope.PROVINCE:
            district_ids = [d.id for d in self._store.list_districts(scope_id)]
            if not district_ids:
                return []
            return sorted(f.id for f in self._store.list_facilities_in_districts(district_ids))

        if scope == Scope.DISTRICT:
            return sorted(f.id for f in self._store.list_facilities_in_districts([scope_id]))

        children = self._store.list_child_facilities(scope_id)
        return sorted({scope_id, *(child.id for child in children)})

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    @staticmethod
    def filter_accessible(user: UserContext, facility_ids: Iterable[int]) -> list[int]:
        """Keep only ids the user may access; admins keep everything."""
        ids = sorted(set(facility_ids))
        if user.is_admin:
            return ids
        return [fid for fid in ids if fid in user.accessible_facility_ids]

    def accessible_in_province(self, user: UserContext, province_id: int) -> list[int]:
        return self.resolve(Scope.PROVINCE, province_id, user)

    def accessible_in_district(self, user: UserContext, district_id: int) -> list[int]:
        return self.resolve(Scope.DISTRICT, district_id, user)

    def validate_province_access(self, user: UserContext, province_id: int) -> bool:
        """True for admins or when the user can see a facility in the province."""
        if user.is_admin:
            return True
        return bool(self.accessible_in_province(user, province_id))

    def validate_district_access(self, user: UserContext, district_id: int) -> bool:
        if user.is_admin:
            return True
        return bool(self.accessible_in_district(user, district_id))

    def validate_facility_access(self, user: UserContext, facility_id: int) -> bool:
        return user.is_admin or facility_id in user.accessible_facility_ids

    def validate_scope_access(self, user: UserContext, scope: str | None, scope_id: int | None) -> bool:
        """Dispatch to the matching ``validate_*_access`` check."""
        if scope is None or scope == Scope.COUNTRY:
            return True
        if scope_id is None:
            raise ScopeValidationError(f"scopeId is required for {scope} scope")
        if scope == Scope.PROVINCE:
            return self.validate_province_access(user, scope_id)
        if scope == Scope.DISTRICT:
            return self.validate_district_access(user, scope_id)
        if scope == Scope.FACILITY:
            return self.validate_facility_access(user, scope_id)
        raise ScopeValidationError(
            f"Invalid scope '{scope}'. Allowed values: {sorted(VALID_SCOPES)}."
        )
