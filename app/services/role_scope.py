"""
app/services/role_scope.py

Narrows dashboard filters to what the caller's role may see.

Runs once per dashboard request, before any component executes. The result
always carries ``facility_ids`` except for admins who asked for no scope,
whose components then fall back to scope resolution.
"""

from __future__ import annotations

import logging

from app.domain.scope import Role, Scope, ScopeFilter, UserContext
from app.services.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)


def apply_role_based_scope(
    filters: ScopeFilter,
    user: UserContext,
    resolver: ScopeResolver,
) -> ScopeFilter:
    """
    Return a copy of *filters* restricted according to *user*'s role.

    Admins
        The requested scope is resolved without access control. Non-country
        scopes without ``scope_id`` are left unresolved.
    hospital_accountant
        Facility scope on the user's own facility.
    district_accountant
        District scope on the user's own district.
    provincial_accountant
        Province scope on the province of the user's facility, with every
        facility of that province.
    Anyone else
        The user's accessible facilities.
    """
    accessible = tuple(sorted(user.accessible_facility_ids))

    if user.is_admin:
        if filters.scope == Scope.COUNTRY:
            return filters.with_changes(
                facility_ids=tuple(resolver.resolve_unrestricted(Scope.COUNTRY, None))
            )
        if filters.scope is not None and filters.scope_id is not None:
            return filters.with_changes(
                facility_ids=tuple(resolver.resolve_unrestricted(filters.scope, filters.scope_id))
            )
        return filters

    if user.role == Role.HOSPITAL_ACCOUNTANT:
        return filters.with_changes(
            scope=Scope.FACILITY,
            scope_id=user.facility_id,
            facility_ids=accessible,
        )

    if user.role == Role.DISTRICT_ACCOUNTANT and user.district_id is not None:
        return filters.with_changes(
            scope=Scope.DISTRICT,
            scope_id=user.district_id,
            facility_ids=accessible,
        )

    if user.role == Role.PROVINCIAL_ACCOUNTANT:
        province_id = _province_of_user(user, resolver)
        if province_id is not None:
            return filters.with_changes(
                scope=Scope.PROVINCE,
                scope_id=province_id,
                facility_ids=tuple(resolver.resolve_unrestricted(Scope.PROVINCE, province_id)),
            )
        logger.warning(
            "Provincial accountant %s has no resolvable province; using accessible facilities",
            user.user_id,
        )

    return filters.with_changes(facility_ids=accessible)


def _province_of_user(user: UserContext, resolver: ScopeResolver) -> int | None:
    if user.facility_id is None:
        return None
    store = resolver.store
    facility = store.get_facility(user.facility_id)
    if facility is None or facility.district_id is None:
        return None
    district = store.get_district(facility.district_id)
    return district.province_id if district is not None else None
