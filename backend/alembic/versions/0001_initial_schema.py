"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the operational dashboard backend:
departments, the operational record tables, approval_requests,
data_mutations.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # --- departments ---
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- critical_issues ---
    op.create_table(
        "critical_issues",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("issue_name", sa.String(255), nullable=False),
        sa.Column("department_id", sa.Integer, sa.ForeignKey("departments.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="breakdown"),
        sa.Column("description", sa.String(500), nullable=False),
        *_timestamps(),
    )

    # --- maintenance_routine ---
    op.create_table(
        "maintenance_routine",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("job_name", sa.String(255), nullable=False),
        sa.Column("department_id", sa.Integer, sa.ForeignKey("departments.id"), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        *_timestamps(),
    )

    # --- kta_tta ---
    op.create_table(
        "kta_tta",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("register_number", sa.String(50), nullable=True),
        sa.Column("reporter_npp", sa.String(50), nullable=False),
        sa.Column("reporter_name", sa.String(150), nullable=False),
        sa.Column("report_date", sa.Date, nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("finding_area", sa.String(255), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("pic_department", sa.String(50), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="open"),
        sa.Column("due_date", sa.Date, nullable=True),
        *_timestamps(),
    )

    # --- safety_incidents ---
    op.create_table(
        "safety_incidents",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("nearmiss", sa.Integer, nullable=False, server_default="0"),
        sa.Column("equipment_accident", sa.Integer, nullable=False, server_default="0"),
        sa.Column("minor_injury", sa.Integer, nullable=False, server_default="0"),
        sa.Column("light_injury", sa.Integer, nullable=False, server_default="0"),
        sa.Column("severe_injury", sa.Integer, nullable=False, server_default="0"),
        sa.Column("fatality", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )

    # --- energy_targets ---
    op.create_table(
        "energy_targets",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("target", sa.Float, nullable=False),
        *_timestamps(),
    )

    # --- energy_consumption ---
    op.create_table(
        "energy_consumption",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("mine_consumption", sa.Float, nullable=False, server_default="0"),
        sa.Column("plant_consumption", sa.Float, nullable=False, server_default="0"),
        sa.Column("supporting_consumption", sa.Float, nullable=False, server_default="0"),
        *_timestamps(),
    )

    # --- approval_requests ---
    op.create_table(
        "approval_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_type", sa.String(20), nullable=False),
        sa.Column("table_name", sa.String(64), nullable=False, index=True),
        sa.Column("record_id", sa.Integer, nullable=True),
        sa.Column("old_data", sa.JSON, nullable=False),
        sa.Column("new_data", sa.JSON, nullable=False),
        sa.Column("requester_id", sa.Integer, nullable=False, index=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="pending", index=True),
        sa.Column("reviewer_id", sa.Integer, nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("apply_error", sa.String(500), nullable=True),
        *_timestamps(),
    )

    # --- data_mutations ---
    op.create_table(
        "data_mutations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(64), nullable=False, index=True),
        sa.Column("record_id", sa.Integer, nullable=False),
        sa.Column("actor_id", sa.Integer, nullable=False),
        sa.Column("action_type", sa.String(10), nullable=False),
        sa.Column("before_snapshot", sa.JSON, nullable=True),
        sa.Column("after_snapshot", sa.JSON, nullable=True),
        sa.Column("approval_request_id", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("data_mutations")
    op.drop_table("approval_requests")
    op.drop_table("energy_consumption")
    op.drop_table("energy_targets")
    op.drop_table("safety_incidents")
    op.drop_table("kta_tta")
    op.drop_table("maintenance_routine")
    op.drop_table("critical_issues")
    op.drop_table("departments")
