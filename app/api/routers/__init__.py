"""
app/api/routers package marker.
"""

from app.api.routers.dashboard_router import router as dashboard_router
from app.api.routers.statements_router import router as statements_router

__all__ = [
    "dashboard_router",
    "statements_router",
]
