"""employees and licenses

Revision ID: 7e3f9a1b2c4d
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "7e3f9a1b2c4d"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "employees",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("rank", sa.String(length=100), nullable=False),
        sa.Column("file_number", sa.String(length=50), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("file_number", name="uq_employee_file_number"),
    )
    op.create_table(
        "licenses",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("employee_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("license_type", sa.String(length=20), nullable=False),
        sa.Column("license_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Integer(), nullable=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("hours IS NULL OR hours > 0", name="ck_license_hours_positive"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "license_date", name="uq_license_employee_date"),
    )
    op.create_index("ix_licenses_employee_id", "licenses", ["employee_id"])
    op.create_index("ix_licenses_year_month", "licenses", ["year", "month"])


def downgrade() -> None:
    op.drop_index("ix_licenses_year_month", table_name="licenses")
    op.drop_index("ix_licenses_employee_id", table_name="licenses")
    op.drop_table("licenses")
    op.drop_table("employees")
