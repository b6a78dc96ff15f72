"""
app/api/routers/dashboard_router.py

Unified dashboard endpoint.

One request returns any subset of the dashboard components. Component
failures are reported inside the payload; only request-level problems
(bad filters, no reporting period) change the HTTP status.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies import get_dashboard_orchestrator, get_user_context
from app.domain.errors import ReportingPeriodNotFoundError, ScopeValidationError
from app.domain.scope import UserContext
from app.schemas.dashboard import DashboardQuery, DashboardResponse
from app.services.dashboard_orchestrator import DashboardOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", status_code=status.HTTP_200_OK)
def get_dashboard(
    components: str = Query(..., description="Comma-separated component names"),
    scope: str | None = Query(default=None),
    scope_id: int | None = Query(default=None, alias="scopeId"),
    project_type: str | None = Query(default=None, alias="projectType"),
    period_id: int | None = Query(default=None, alias="periodId"),
    quarter: int | None = Query(default=None),
    user: UserContext = Depends(get_user_context),
    orchestrator: DashboardOrchestrator = Depends(get_dashboard_orchestrator),
) -> DashboardResponse:
    """
    Fetch the requested dashboard components for the caller.

    Raises HTTP 400 for malformed filters or an empty component list.
    Raises HTTP 404 when no reporting period can be resolved.
    """
    try:
        query = DashboardQuery.from_params(
            components,
            scope=scope,
            scope_id=scope_id,
            project_type=project_type,
            period_id=period_id,
            quarter=quarter,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one dashboard component is required.",
        ) from exc

    try:
        return orchestrator.get_dashboard_data(query.components, query.to_scope_filter(), user)
    except ScopeValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ReportingPeriodNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        logger.exception("Dashboard request failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dashboard data.",
        ) from exc
