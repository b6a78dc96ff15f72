"""
tests/test_logging_utils.py

Aggregation summary log lines.
"""

from __future__ import annotations

import json
import logging
import time

import pytest

from app.domain.scope import UserContext
from app.logging_utils import log_aggregation_event

LOGGER = logging.getLogger("tests.aggregation_events")


class TestLogAggregationEvent:
    def test_caller_and_duration_are_added(self, caplog: pytest.LogCaptureFixture) -> None:
        user = UserContext(user_id="acct-1", role="accountant")
        with caplog.at_level(logging.INFO, logger=LOGGER.name):
            log_aggregation_event(LOGGER, "compiled_statement", user=user, started=time.perf_counter(), facilities=2)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "compiled_statement"
        assert (payload["user_id"], payload["role"], payload["facilities"]) == ("acct-1", "accountant", 2)
        assert payload["duration_ms"] >= 0

    def test_optional_fields_are_omitted(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger=LOGGER.name):
            log_aggregation_event(LOGGER, "multi_catalog_aggregation", activity_matches=3)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload == {"event": "multi_catalog_aggregation", "activity_matches": 3}

    def test_disabled_level_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger=LOGGER.name):
            log_aggregation_event(LOGGER, "dashboard_request", components=["metrics"])
        assert caplog.records == []
