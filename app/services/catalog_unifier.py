"""
app/services/catalog_unifier.py

Merges facility-type-specific activity catalogs into one canonical catalog.

Different facility types use different code namespaces for the same
conceptual statement line, so activities are grouped by their position
``(category, subcategory or "none", display_order)`` rather than by code or
name. The first definition seen for a position supplies the descriptive
fields; later ones only add their facility type.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict

from app.domain.activities import ActivityDefinition, UnifiedActivity

logger = logging.getLogger(__name__)


def build_unified_catalog(
    catalogs_by_type: Mapping[str, Sequence[ActivityDefinition]],
) -> list[UnifiedActivity]:
    """
    Build the unified catalog sorted by ``(category, display_order)``.

    Parameters
    ----------
    catalogs_by_type:
        ``facility_type → activity definitions`` as loaded from the store.
    """
    first_seen: dict[tuple[str, str, int], ActivityDefinition] = {}
    facility_types: dict[tuple[str, str, int], list[str]] = {}

    for facility_type, catalog in catalogs_by_type.items():
        for activity in catalog:
            key = activity.grouping_key
            if key not in first_seen:
                first_seen[key] = activity
                facility_types[key] = []
            if facility_type not in facility_types[key]:
                facility_types[key].append(facility_type)

    unified = [
        UnifiedActivity(
            **_definition_fields(activity),
            facility_types=frozenset(facility_types[key]),
            source_code=activity.code,
        )
        for key, activity in first_seen.items()
    ]
    unified.sort(key=lambda activity: (activity.category, activity.display_order))

    logger.debug(
        "Unified %d facility-type catalogs into %d activities",
        len(catalogs_by_type), len(unified),
    )
    return unified


def _definition_fields(activity: ActivityDefinition) -> dict:
    fields = asdict(activity)
    fields.pop("facility_types", None)
    fields.pop("source_code", None)
    return fields
