"""
db/models/activity_catalog.py

Facility-type specific activity catalogs.

Each ``(project_type, facility_type, module_type)`` has its own set of
activity codes. The statement position of an activity lives in
``field_mappings`` (``{"category": "B", "subcategory": "B-02"}``) and is what
lets catalogs of different facility types be unified.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin


class ActivityCategory(Base, TimestampMixin):
    __tablename__ = "activity_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_type: Mapped[str] = mapped_column(String(20), nullable=False)
    facility_type: Mapped[str] = mapped_column(String(50), nullable=False)
    module_type: Mapped[str] = mapped_column(String(20), nullable=False, default="execution")
    code: Mapped[str] = mapped_column(String(20), nullable=False, comment="Section letter, e.g. B")
    sub_category_code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Subcategory code, e.g. B-01",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_sub_category: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index(
            "ix_activity_categories_scope",
            "module_type",
            "project_type",
            "facility_type",
        ),
    )


class DynamicActivity(Base, TimestampMixin):
    __tablename__ = "dynamic_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("activity_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_type: Mapped[str] = mapped_column(String(20), nullable=False)
    facility_type: Mapped[str] = mapped_column(String(50), nullable=False)
    module_type: Mapped[str] = mapped_column(String(20), nullable=False, default="execution")
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_total_row: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    field_mappings: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment='Statement position, e.g. {"category": "B", "subcategory": "B-01"}',
    )

    category: Mapped[ActivityCategory] = relationship()

    __table_args__ = (
        Index(
            "ix_dynamic_activities_scope",
            "module_type",
            "project_type",
            "facility_type",
        ),
    )
