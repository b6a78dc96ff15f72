"""
app/api/routers/statements_router.py

Compiled execution statement endpoint.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies import get_compiled_statement_service, get_user_context
from app.domain.errors import (
    AggregationCancelled,
    CatalogLoadError,
    ScopeAccessDeniedError,
    ScopeValidationError,
)
from app.domain.scope import UserContext
from app.schemas.statements import CompiledStatementResponse
from app.services.compiled_statement_service import (
    CompiledStatementRequest,
    CompiledStatementService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/statements", tags=["statements"])


@router.get(
    "/compiled",
    response_model=CompiledStatementResponse,
    status_code=status.HTTP_200_OK,
)
def get_compiled_statement(
    scope: str | None = Query(default=None),
    scope_id: int | None = Query(default=None, alias="scopeId"),
    project_type: str | None = Query(default=None, alias="projectType"),
    facility_type: str | None = Query(default=None, alias="facilityType"),
    period_id: int | None = Query(default=None, alias="reportingPeriodId"),
    year: int | None = Query(default=None),
    quarter: int | None = Query(default=None),
    user: UserContext = Depends(get_user_context),
    service: CompiledStatementService = Depends(get_compiled_statement_service),
) -> CompiledStatementResponse:
    """
    Build the compiled execution statement for the requested scope.

    Raises HTTP 400 for malformed filters, 403 when the scope is not
    accessible, 500 when catalogs or the store fail, 504 on timeout.
    """
    request = CompiledStatementRequest(
        scope=scope,
        scope_id=scope_id,
        project_type=project_type,
        facility_type=facility_type,
        period_id=period_id,
        year=year,
        quarter=quarter,
    )
    try:
        statement = service.compile(request, user)
    except ScopeValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ScopeAccessDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except AggregationCancelled as exc:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    except (CatalogLoadError, SQLAlchemyError) as exc:
        logger.exception("Compiled statement failed for %s", request.to_dict())
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate compiled execution report: {exc}",
        ) from exc

    return CompiledStatementResponse.model_validate(statement.to_dict())
