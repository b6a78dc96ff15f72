"""
app/api/dependencies.py

Shared FastAPI dependencies: caller identity and data access.

Authentication happens upstream. The gateway forwards the authenticated
user as ``X-User-*`` headers, which are parsed here into a read-only
:class:`UserContext`.
"""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.domain.scope import UserContext
from app.repositories.sqlalchemy_store import SqlAlchemyFacilityStore, session_store_factory
from app.repositories.store import FacilityStore, StoreFactory
from app.services.compiled_statement_service import CompiledStatementService
from app.services.dashboard_orchestrator import DashboardOrchestrator
from db.session import SessionLocal, get_db


def _parse_id_list(raw: str | None, header: str) -> frozenset[int]:
    if not raw:
        return frozenset()
    try:
        return frozenset(int(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{header} must be a comma-separated list of integers.",
        ) from exc


def get_user_context(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_user_facility_ids: str | None = Header(default=None),
    x_user_permissions: str | None = Header(default=None),
    x_user_facility_id: int | None = Header(default=None),
    x_user_district_id: int | None = Header(default=None),
) -> UserContext:
    """
    Build the caller's :class:`UserContext` from gateway headers.

    Raises HTTP 401 when the identity headers are missing.
    """

    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authenticated user context.",
        )

    permissions = frozenset(
        part.strip() for part in (x_user_permissions or "").split(",") if part.strip()
    )
    return UserContext(
        user_id=x_user_id.strip(),
        role=x_user_role.strip().lower(),
        accessible_facility_ids=_parse_id_list(x_user_facility_ids, "X-User-Facility-Ids"),
        permissions=permissions,
        facility_id=x_user_facility_id,
        district_id=x_user_district_id,
    )


def get_store(db: Session = Depends(get_db)) -> Generator[FacilityStore, None, None]:
    store = SqlAlchemyFacilityStore(db)
    try:
        yield store
    finally:
        store.close()


def get_store_factory() -> StoreFactory:
    return session_store_factory(SessionLocal)


def get_dashboard_orchestrator(
    store_factory: StoreFactory = Depends(get_store_factory),
) -> DashboardOrchestrator:
    return DashboardOrchestrator(store_factory)


def get_compiled_statement_service(
    store: FacilityStore = Depends(get_store),
) -> CompiledStatementService:
    return CompiledStatementService(store)
