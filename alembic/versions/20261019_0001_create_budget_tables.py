"""create organization, reporting and activity catalog tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "provinces",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "districts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("province_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["province_id"], ["provinces.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_districts_province_id", "districts", ["province_id"], unique=False)

    op.create_table(
        "facilities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("facility_type", sa.String(length=50), nullable=False,
                  comment="hospital | health_center"),
        sa.Column("district_id", sa.Integer(), nullable=True),
        sa.Column("parent_facility_id", sa.Integer(), nullable=True,
                  comment="Parent hospital of a health center"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["district_id"], ["districts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["parent_facility_id"], ["facilities.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_facilities_district_id", "facilities", ["district_id"], unique=False)
    op.create_index("ix_facilities_parent_facility_id", "facilities", ["parent_facility_id"], unique=False)

    op.create_table(
        "reporting_periods",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("period_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False,
                  comment="ACTIVE | INACTIVE | CLOSED"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_reporting_periods_status_year", "reporting_periods", ["status", "year"], unique=False
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("project_type", sa.String(length=20), nullable=False, comment="HIV | Malaria | TB"),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("facility_id", sa.Integer(), nullable=True),
        sa.Column("reporting_period_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["reporting_period_id"], ["reporting_periods.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_projects_reporting_period_status",
        "projects",
        ["reporting_period_id", "status"],
        unique=False,
    )

    op.create_table(
        "form_data_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(length=20), nullable=False,
                  comment="planning | execution"),
        sa.Column("facility_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("reporting_period_id", sa.Integer(), nullable=False),
        sa.Column("form_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("approval_status", sa.String(length=20), nullable=True,
                  comment="APPROVED | PENDING | REJECTED"),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reporting_period_id"], ["reporting_periods.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_form_data_entries_type_period_facility",
        "form_data_entries",
        ["entity_type", "reporting_period_id", "facility_id"],
        unique=False,
    )
    op.create_index("ix_form_data_entries_project_id", "form_data_entries", ["project_id"], unique=False)

    op.create_table(
        "activity_categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_type", sa.String(length=20), nullable=False),
        sa.Column("facility_type", sa.String(length=50), nullable=False),
        sa.Column("module_type", sa.String(length=20), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False, comment="Section letter, e.g. B"),
        sa.Column("sub_category_code", sa.String(length=20), nullable=True,
                  comment="Subcategory code, e.g. B-01"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_sub_category", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_activity_categories_scope",
        "activity_categories",
        ["module_type", "project_type", "facility_type"],
        unique=False,
    )

    op.create_table(
        "dynamic_activities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("project_type", sa.String(length=20), nullable=False),
        sa.Column("facility_type", sa.String(length=50), nullable=False),
        sa.Column("module_type", sa.String(length=20), nullable=False),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_total_row", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column(
            "field_mappings",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment='Statement position, e.g. {"category": "B", "subcategory": "B-01"}',
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["activity_categories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_dynamic_activities_scope",
        "dynamic_activities",
        ["module_type", "project_type", "facility_type"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_dynamic_activities_scope", table_name="dynamic_activities")
    op.drop_table("dynamic_activities")
    op.drop_index("ix_activity_categories_scope", table_name="activity_categories")
    op.drop_table("activity_categories")
    op.drop_index("ix_form_data_entries_project_id", table_name="form_data_entries")
    op.drop_index("ix_form_data_entries_type_period_facility", table_name="form_data_entries")
    op.drop_table("form_data_entries")
    op.drop_index("ix_projects_reporting_period_status", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_reporting_periods_status_year", table_name="reporting_periods")
    op.drop_table("reporting_periods")
    op.drop_index("ix_facilities_parent_facility_id", table_name="facilities")
    op.drop_index("ix_facilities_district_id", table_name="facilities")
    op.drop_table("facilities")
    op.drop_index("ix_districts_province_id", table_name="districts")
    op.drop_table("districts")
    op.drop_table("provinces")
