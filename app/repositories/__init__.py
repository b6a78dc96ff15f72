"""
app/repositories package marker.
"""

from app.repositories.sqlalchemy_store import SqlAlchemyFacilityStore, session_store_factory
from app.repositories.store import EXECUTION, PLANNING, FacilityStore, StoreFactory

__all__ = [
    "EXECUTION",
    "PLANNING",
    "FacilityStore",
    "SqlAlchemyFacilityStore",
    "StoreFactory",
    "session_store_factory",
]
