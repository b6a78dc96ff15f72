"""
db/models/organization.py

Organizational hierarchy: province → district → facility.

Health centers point at their parent hospital through
``parent_facility_id``; facility scope resolves to a facility plus its
direct children.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.form_data_entry import FormDataEntry


class Province(Base):
    __tablename__ = "provinces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    districts: Mapped[list[District]] = relationship(back_populates="province")


class District(Base):
    __tablename__ = "districts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    province_id: Mapped[int] = mapped_column(
        ForeignKey("provinces.id", ondelete="CASCADE"),
        nullable=False,
    )

    province: Mapped[Province] = relationship(back_populates="districts")
    facilities: Mapped[list[Facility]] = relationship(back_populates="district")

    __table_args__ = (Index("ix_districts_province_id", "province_id"),)


class Facility(Base, TimestampMixin):
    """
    A hospital or health center reporting planning and execution data.

    ``facility_type`` selects the activity catalog used for its records.
    """

    __tablename__ = "facilities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    facility_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="hospital | health_center",
    )
    district_id: Mapped[int | None] = mapped_column(
        ForeignKey("districts.id", ondelete="SET NULL"),
        nullable=True,
    )
    parent_facility_id: Mapped[int | None] = mapped_column(
        ForeignKey("facilities.id", ondelete="SET NULL"),
        nullable=True,
        comment="Parent hospital of a health center",
    )

    district: Mapped[District | None] = relationship(back_populates="facilities")
    form_data_entries: Mapped[list[FormDataEntry]] = relationship(back_populates="facility")

    __table_args__ = (
        Index("ix_facilities_district_id", "district_id"),
        Index("ix_facilities_parent_facility_id", "parent_facility_id"),
    )
