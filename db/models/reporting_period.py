"""
db/models/reporting_period.py

Fiscal reporting periods and the projects planned within them.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ReportingPeriod(Base, TimestampMixin):
    __tablename__ = "reporting_periods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), nullable=False, default="ANNUAL")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="ACTIVE",
        comment="ACTIVE | INACTIVE | CLOSED",
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (Index("ix_reporting_periods_status_year", "status", "year"),)


class Project(Base, TimestampMixin):
    """One health program (HIV, Malaria, TB) run by a facility in a period."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    project_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="HIV | Malaria | TB",
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    facility_id: Mapped[int | None] = mapped_column(
        ForeignKey("facilities.id", ondelete="SET NULL"),
        nullable=True,
    )
    reporting_period_id: Mapped[int | None] = mapped_column(
        ForeignKey("reporting_periods.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_projects_reporting_period_status", "reporting_period_id", "status"),
    )
