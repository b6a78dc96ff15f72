"""
app/services/aggregation_service.py

Activity aggregation layer for compiled execution statements.

Turns per-facility execution entries into ``AggregatedData``
(``activity_code → facility_id → QuarterlyValues``) using
:mod:`app.services.activity_matcher` and :mod:`app.services.value_extractor`.

Modes
-----
Single catalog
    Every facility is read against the same canonical catalog; codes are
    resolved with exact-then-case-insensitive matching.
Multiple catalogs
    Facilities of different types expose the same logical line under
    different codes. Each unified activity is mapped to the facility's own
    definition through the ``(category, subcategory, display_order)`` key.

Missing activities and facilities without a catalog yield zero values and
are counted in logs; neither is an error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any, Final

from app.domain.activities import (
    ActivitiesByCode,
    ActivityDefinition,
    AggregatedData,
    ExecutionEntry,
    QuarterlyValues,
    UnifiedActivity,
    normalize_activities,
    parse_form_activities,
)
from app.domain.cancellation import CancellationToken
from app.logging_utils import log_aggregation_event
from app.services.activity_matcher import match_activity_code
from app.services.value_extractor import extract_activity_values

logger = logging.getLogger(__name__)

# Dynamically created VAT receivable rows (e.g. HIV_EXEC_HOSPITAL_E_VAT_FUEL)
# are folded into the catalog line whose code carries the mapped suffix.
VAT_RECEIVABLE_MARKER: Final[str] = "_E_VAT_"
VAT_CATEGORY_SUFFIXES: Final[tuple[tuple[str, str], ...]] = (
    ("COMMUNICATION_ALL", "_E_12"),
    ("MAINTENANCE", "_E_13"),
    ("FUEL", "_E_14"),
    ("SUPPLIES", "_E_15"),
    ("OFFICE_SUPPLIES", "_E_15"),
)


def sum_quarterly_values(values: Iterable[QuarterlyValues]) -> QuarterlyValues:
    """
    Field-wise sum of *values*.

    ``total`` is recomputed from the summed quarters rather than summing the
    inputs' totals, so precomputed stock overrides are never double-counted.
    An empty input yields zero values.

    The sum is associative and commutative over its input up to float
    rounding: amounts that are not binary-exact may differ in the last bit
    when regrouped.
    """
    q1 = q2 = q3 = q4 = 0.0
    for item in values:
        q1 += item.q1
        q2 += item.q2
        q3 += item.q3
        q4 += item.q4
    return QuarterlyValues.from_quarters(q1, q2, q3, q4)


def _check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


class AggregationService:
    """
    Builds ``AggregatedData`` from execution entries.

    Stateless: every method works on its arguments only and returns new
    mappings, so one instance may be shared across concurrent requests.
    """

    sum_quarterly_values = staticmethod(sum_quarterly_values)

    # ------------------------------------------------------------------
    # Data cleaning
    # ------------------------------------------------------------------

    def clean_entries(
        self,
        entries: Sequence[ExecutionEntry],
    ) -> tuple[list[ExecutionEntry], list[str]]:
        """
        Drop unusable entries and activities before aggregation.

        Entries whose ``form_data`` is not a mapping are skipped. Activities
        without a string ``code`` are filtered out while the stored
        list/object shape is preserved.

        Returns
        -------
        tuple
            ``(cleaned_entries, warnings)``; one warning per affected facility.
        """
        cleaned: list[ExecutionEntry] = []
        warnings: list[str] = []

        for entry in entries:
            if not isinstance(entry.form_data, Mapping):
                warnings.append(f"Facility {entry.facility_name}: Invalid form data structure")
                continue

            parsed = parse_form_activities(entry.form_data)
            if parsed is None:
                cleaned.append(replace(entry, form_data={**entry.form_data, "activities": []}))
                continue

            raw_items = (
                list(parsed.activities.items())
                if isinstance(parsed, ActivitiesByCode)
                else [(None, item) for item in parsed.activities]
            )
            valid = [
                (key, item)
                for key, item in raw_items
                if isinstance(item, Mapping) and isinstance(item.get("code"), str) and item["code"]
            ]

            if len(valid) != len(raw_items):
                warnings.append(
                    f"Facility {entry.facility_name}: Filtered out "
                    f"{len(raw_items) - len(valid)} invalid activities"
                )

            activities: Any
            if isinstance(parsed, ActivitiesByCode):
                activities = dict(valid)
            else:
                activities = [item for _, item in valid]
            cleaned.append(replace(entry, form_data={**entry.form_data, "activities": activities}))

        if warnings:
            logger.warning("Data cleaning produced %d warnings: %s", len(warnings), warnings)
        return cleaned, warnings

    # ------------------------------------------------------------------
    # Single catalog
    # ------------------------------------------------------------------

    def aggregate_by_activity(
        self,
        entries: Sequence[ExecutionEntry],
        catalog: Sequence[ActivityDefinition],
        *,
        token: CancellationToken | None = None,
    ) -> dict[str, dict[str, QuarterlyValues]]:
        """
        Aggregate every catalog activity for every entry's facility.

        Codes are resolved per facility with
        :func:`~app.services.activity_matcher.match_activity_code`;
        unmatched activities become zero values.
        """
        aggregated: dict[str, dict[str, QuarterlyValues]] = {a.code: {} for a in catalog}

        for entry in entries:
            _check(token)
            facility_id = str(entry.facility_id)
            available_codes = list(normalize_activities(entry.form_data).keys())

            for activity in catalog:
                matched = match_activity_code(activity.code, available_codes)
                if matched is None:
                    aggregated[activity.code][facility_id] = QuarterlyValues.zero()
                    continue
                aggregated[activity.code][facility_id] = extract_activity_values(
                    entry.form_data, matched, activity.name
                )

        return aggregated

    # ------------------------------------------------------------------
    # Multiple catalogs
    # ------------------------------------------------------------------

    def aggregate_with_multiple_catalogs(
        self,
        entries: Sequence[ExecutionEntry],
        facility_catalog_map: Mapping[str, Sequence[ActivityDefinition]],
        unified_catalog: Sequence[UnifiedActivity],
        *,
        token: CancellationToken | None = None,
    ) -> dict[str, dict[str, QuarterlyValues]]:
        """
        Aggregate entries of mixed facility types against a unified catalog.

        Parameters
        ----------
        facility_catalog_map:
            ``facility_id (str) → that facility type's catalog``. Facilities
            absent from the map get zero values for every unified activity.
        unified_catalog:
            Output of :func:`app.services.catalog_unifier.build_unified_catalog`.
        """
        aggregated: dict[str, dict[str, QuarterlyValues]] = {a.code: {} for a in unified_catalog}

        catalog_indexes: dict[str, dict[tuple[str, str, int], ActivityDefinition]] = {
            facility_id: {activity.grouping_key: activity for activity in catalog}
            for facility_id, catalog in facility_catalog_map.items()
        }

        facilities_without_catalog = 0
        matches = 0
        mismatches = 0

        for entry in entries:
            _check(token)
            facility_id = str(entry.facility_id)
            index = catalog_indexes.get(facility_id)

            if not index:
                facilities_without_catalog += 1
                for unified in unified_catalog:
                    aggregated[unified.code][facility_id] = QuarterlyValues.zero()
                continue

            available_codes = set(normalize_activities(entry.form_data).keys())

            for unified in unified_catalog:
                facility_activity = index.get(unified.grouping_key)
                if facility_activity is not None and facility_activity.code in available_codes:
                    aggregated[unified.code][facility_id] = extract_activity_values(
                        entry.form_data, facility_activity.code, facility_activity.name
                    )
                    matches += 1
                else:
                    aggregated[unified.code][facility_id] = QuarterlyValues.zero()
                    mismatches += 1

        log_aggregation_event(
            logger,
            "multi_catalog_aggregation",
            facilities=len(entries),
            facilities_without_catalog=facilities_without_catalog,
            activity_matches=matches,
            activity_mismatches=mismatches,
        )
        return aggregated

    # ------------------------------------------------------------------
    # VAT receivables
    # ------------------------------------------------------------------

    def apply_vat_receivables(
        self,
        aggregated: AggregatedData,
        entries: Sequence[ExecutionEntry],
        unified_catalog: Sequence[ActivityDefinition],
    ) -> dict[str, dict[str, QuarterlyValues]]:
        """
        Fold dynamically created VAT receivable rows into section E lines.

        Returns a new mapping; *aggregated* is left untouched.
        """
        result: dict[str, dict[str, QuarterlyValues]] = {
            code: dict(by_facility) for code, by_facility in aggregated.items()
        }

        for entry in entries:
            facility_id = str(entry.facility_id)
            for code, activity in normalize_activities(entry.form_data).items():
                if VAT_RECEIVABLE_MARKER not in code or not isinstance(activity, Mapping):
                    continue

                suffix = _vat_suffix(code)
                if suffix is None:
                    continue
                target = next((a for a in unified_catalog if suffix in a.code), None)
                if target is None:
                    continue

                try:
                    values = QuarterlyValues.from_quarters(
                        *(float(activity.get(key) or 0) for key in ("q1", "q2", "q3", "q4"))
                    )
                except (TypeError, ValueError):
                    logger.warning("Malformed VAT receivable %s for facility %s", code, facility_id)
                    continue

                result.setdefault(target.code, {})[facility_id] = values
                logger.debug(
                    "Mapped VAT receivable %s to %s for facility %s: %s",
                    code, target.code, facility_id, values,
                )

        return result


def _vat_suffix(code: str) -> str | None:
    upper = code.upper()
    for keyword, suffix in VAT_CATEGORY_SUFFIXES:
        if keyword in upper:
            return suffix
    return None
