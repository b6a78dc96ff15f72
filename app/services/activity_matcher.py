"""
app/services/activity_matcher.py

Resolves a canonical activity code to the code present in a facility record.

Only exact and case-insensitive equality are accepted. Prefix matching
would let HIV_EXEC_A_1 match HIV_EXEC_A_10 and double-count totals.
"""

from __future__ import annotations

from collections.abc import Iterable


def match_activity_code(activity_code: str, available_codes: Iterable[str]) -> str | None:
    """
    Return the code from *available_codes* that matches *activity_code*.

    Exact match wins; otherwise the first case-insensitive match is returned.
    ``None`` when nothing matches.
    """
    codes = list(available_codes)
    if activity_code in codes:
        return activity_code

    lowered = activity_code.lower()
    for code in codes:
        if code.lower() == lowered:
            return code
    return None
