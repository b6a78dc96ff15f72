"""
db/models/form_data_entry.py

Planning and execution submissions.

``form_data`` holds the facility-type specific activity payload, e.g.::

    {
        "activities": {
            "HIV_EXEC_HOSPITAL_A_1": {"q1": 100, "q2": 200, "cumulative_balance": null},
            "HIV_EXEC_HOSPITAL_B_1": {"q1": 50, "netAmount": {"q1": 42.0}}
        },
        "rollups": {"bySection": {"A": {"total": 300}}}
    }

``metadata_json`` carries ``quarter`` and approval details
(``approvedBy``, ``approvedAt``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.organization import Facility
    from db.models.reporting_period import Project


class FormDataEntry(Base, TimestampMixin):
    __tablename__ = "form_data_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="planning | execution",
    )
    facility_id: Mapped[int] = mapped_column(
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    reporting_period_id: Mapped[int] = mapped_column(
        ForeignKey("reporting_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    form_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    approval_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="APPROVED | PENDING | REJECTED",
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )

    facility: Mapped[Facility] = relationship(back_populates="form_data_entries")
    project: Mapped[Project] = relationship()

    __table_args__ = (
        Index(
            "ix_form_data_entries_type_period_facility",
            "entity_type",
            "reporting_period_id",
            "facility_id",
        ),
        Index("ix_form_data_entries_project_id", "project_id"),
    )
