"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.activity_catalog import ActivityCategory, DynamicActivity
from db.models.form_data_entry import FormDataEntry
from db.models.organization import District, Facility, Province
from db.models.reporting_period import Project, ReportingPeriod

__all__ = [
    "Province",
    "District",
    "Facility",
    "ReportingPeriod",
    "Project",
    "FormDataEntry",
    "ActivityCategory",
    "DynamicActivity",
]
