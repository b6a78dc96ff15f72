"""
app/services/value_extractor.py

Pulls one activity's quarterly values out of one facility's raw form data.

Extraction rules
----------------
1. ``formData.activities`` is normalized to ``code → activity`` whatever its
   stored shape.
2. The requested code is looked up exactly. A missing activity is a valid
   state and yields zero values.
3. VAT-applicable expenses (see :func:`is_vat_applicable_expense`) read the
   VAT-exclusive ``netAmount.q1..q4`` when present. Older records without
   ``netAmount`` fall back to the gross ``q1..q4``; the fallback is logged as
   a compatibility warning because it changes the total compared with the
   VAT-aware path.
4. ``total`` is ``cumulative_balance`` verbatim when the record carries one,
   otherwise ``q1 + q2 + q3 + q4``.
5. Malformed data never propagates: any exception produces zero values.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.domain.activities import QuarterlyValues, normalize_activities

logger = logging.getLogger(__name__)

_QUARTER_KEYS: tuple[str, ...] = ("q1", "q2", "q3", "q4")


def is_vat_applicable_expense(activity_name: str | None) -> bool:
    """
    Return True for expenses whose net amount excludes recoverable VAT.

    Matches, case-insensitively: "communication" together with "all",
    "maintenance", "fuel", "office supplies".
    """
    if not activity_name:
        return False
    name = activity_name.lower()
    return (
        ("communication" in name and "all" in name)
        or "maintenance" in name
        or "fuel" in name
        or "office supplies" in name
    )


def _number(value: Any) -> float:
    # Falsy values (None, "", 0) count as zero, like the stored JSON does.
    if not value:
        return 0.0
    return float(value)


def _quarters(source: Mapping[str, Any]) -> tuple[float, float, float, float]:
    q1, q2, q3, q4 = (_number(source.get(key)) for key in _QUARTER_KEYS)
    return q1, q2, q3, q4


def extract_activity_values(
    form_data: Any,
    activity_code: str,
    activity_name: str | None = None,
) -> QuarterlyValues:
    """
    Extract :class:`QuarterlyValues` for *activity_code* from *form_data*.

    Parameters
    ----------
    form_data:
        One facility's raw ``formData`` blob.
    activity_code:
        Exact code to look up. Callers resolve case differences beforehand
        with :func:`app.services.activity_matcher.match_activity_code`.
    activity_name:
        Display name of the activity, used only for the VAT predicate.

    Returns
    -------
    QuarterlyValues
        All zeros when the activity is missing or malformed.
    """
    try:
        activity = normalize_activities(form_data).get(activity_code)
        if not activity:
            return QuarterlyValues.zero()

        vat_applicable = is_vat_applicable_expense(activity_name)
        net_amount = activity.get("netAmount")

        if vat_applicable and net_amount:
            q1, q2, q3, q4 = _quarters(net_amount)
            logger.debug(
                "Using net amounts for VAT-applicable activity code=%s name=%r q1_gross=%s q1_net=%s",
                activity_code, activity_name, activity.get("q1"), q1,
            )
        else:
            q1, q2, q3, q4 = _quarters(activity)
            if vat_applicable:
                logger.warning(
                    "VAT-applicable activity code=%s name=%r has no netAmount; "
                    "falling back to gross amounts",
                    activity_code, activity_name,
                )

        cumulative_balance = activity.get("cumulative_balance")
        if cumulative_balance is not None:
            total = float(cumulative_balance)
        else:
            total = q1 + q2 + q3 + q4

        return QuarterlyValues(q1=q1, q2=q2, q3=q3, q4=q4, total=total)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Error extracting values for activity %s: %s", activity_code, exc)
        return QuarterlyValues.zero()
