"""
app/services/dashboard_orchestrator.py

Unified dashboard entry point.

Execution flow
--------------
1. Validate the incoming :class:`ScopeFilter`.
2. Narrow it by the caller's role (once per request).
3. Resolve the reporting period once through a request-scoped
   :class:`ReportingPeriodCache`. A missing period fails the whole request.
4. Run every requested component concurrently on a thread pool, each with
   its own store, and join on all of them.

Component failures are isolated: a failing or unknown component produces
``{"error": True, "message": ...}`` under its own key while the others still
return ``{"data": ...}``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from app.config import DashboardSettings, get_dashboard_settings
from app.domain.cancellation import CancellationToken
from app.domain.errors import (
    AggregationCancelled,
    ReportingPeriodNotFoundError,
    UnknownComponentError,
)
from app.domain.scope import ReportingPeriod, ScopeFilter, UserContext
from app.logging_utils import log_aggregation_event
from app.repositories.store import FacilityStore, StoreFactory
from app.services.dashboard_components import DashboardComponents
from app.services.role_scope import apply_role_based_scope
from app.services.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)

ComponentResult = dict[str, Any]

_ACTIVE_KEY = "active"


class ReportingPeriodCache:
    """
    Request-scoped reporting period lookup keyed by period id or ``"active"``.

    Built fresh for every dashboard request and filled before any
    component runs, so it is only read concurrently.
    """

    def __init__(self, store: FacilityStore) -> None:
        self._store = store
        self._periods: dict[int | str, ReportingPeriod] = {}

    def get(self, period_id: int | None) -> ReportingPeriod | None:
        key: int | str = period_id if period_id is not None else _ACTIVE_KEY
        if key in self._periods:
            return self._periods[key]

        if period_id is not None:
            period = self._store.get_reporting_period(period_id)
            if period is None:
                logger.warning("Reporting period with ID %s not found", period_id)
                return None
        else:
            period = self._store.get_active_reporting_period()
            if period is None:
                logger.warning("No active reporting period found")
                return None

        self._periods[key] = period
        return period


class DashboardOrchestrator:
    """
    Fans dashboard components out over a thread pool.

    Parameters
    ----------
    store_factory:
        Called once for request setup and once per component; each store is
        closed when its work is done.
    settings:
        Worker count and per-request deadline. Defaults to
        :func:`app.config.get_dashboard_settings`.
    components_factory:
        Builds the handler set for one component run. Overridable in tests.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        *,
        settings: DashboardSettings | None = None,
        components_factory: type[DashboardComponents] = DashboardComponents,
    ) -> None:
        self._store_factory = store_factory
        self._settings = settings or get_dashboard_settings()
        self._components_factory = components_factory

    def get_dashboard_data(
        self,
        components: Sequence[str],
        filters: ScopeFilter,
        user: UserContext,
        *,
        token: CancellationToken | None = None,
    ) -> dict[str, ComponentResult]:
        """
        Fetch every requested component.

        Returns
        -------
        dict
            One entry per distinct requested component name, in request order.

        Raises
        ------
        ScopeValidationError
            Malformed filters.
        ReportingPeriodNotFoundError
            Neither the requested nor an active reporting period exists.
        """
        started = time.perf_counter()
        filters.validate()

        if token is None:
            timeout = self._settings.component_timeout_seconds
            token = CancellationToken(timeout if timeout > 0 else None)

        store = self._store_factory()
        try:
            scoped = apply_role_based_scope(filters, user, ScopeResolver(store))
            period = ReportingPeriodCache(store).get(scoped.period_id)
        finally:
            store.close()

        if period is None:
            if scoped.period_id is not None:
                raise ReportingPeriodNotFoundError(f"Reporting period {scoped.period_id} not found")
            raise ReportingPeriodNotFoundError("No active reporting period found")

        enriched = scoped.with_changes(period_id=period.id)
        requested = list(dict.fromkeys(components))
        results: dict[str, ComponentResult] = {}

        workers = max(1, min(self._settings.max_workers, len(requested) or 1))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dashboard") as executor:
            futures = {
                executor.submit(self._run_component, name, enriched, user, period, token): name
                for name in requested
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        failed = sorted(name for name, result in results.items() if result.get("error"))
        log_aggregation_event(
            logger,
            "dashboard_request",
            user=user,
            started=started,
            scope=enriched.scope,
            scope_id=enriched.scope_id,
            period_id=period.id,
            components=requested,
            failed_components=failed,
        )
        return {name: results[name] for name in requested}

    def _run_component(
        self,
        component: str,
        filters: ScopeFilter,
        user: UserContext,
        period: ReportingPeriod,
        token: CancellationToken,
    ) -> ComponentResult:
        if not self._components_factory.is_known(component):
            message = str(UnknownComponentError(component))
            logger.warning(message)
            return {"error": True, "message": message}

        store = self._store_factory()
        try:
            token.raise_if_cancelled()
            handlers = self._components_factory(store, period, token=token)
            return {"data": handlers.handler(component)(filters, user)}
        except AggregationCancelled as exc:
            logger.warning("Dashboard component %s cancelled: %s", component, exc)
            return {"error": True, "message": str(exc)}
        except Exception as exc:  # noqa: BLE001
            logger.exception("Dashboard component %s failed", component)
            return {"error": True, "message": str(exc)}
        finally:
            store.close()
