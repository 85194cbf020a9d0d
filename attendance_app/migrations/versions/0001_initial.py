"""Initial attendance and leave schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

employee_role = postgresql.ENUM("employee", "manager", "admin", name="employee_role", create_type=False)
device_type = postgresql.ENUM("web", "mobile", "tablet", name="device_type", create_type=False)
attendance_status = postgresql.ENUM(
    "present",
    "late",
    "half-day",
    "absent",
    "leave",
    name="attendance_status",
    create_type=False,
)
leave_type = postgresql.ENUM(
    "annual",
    "sick",
    "personal",
    "maternity",
    "paternity",
    "bereavement",
    "other",
    name="leave_type",
    create_type=False,
)
leave_status = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    "cancelled",
    name="leave_status",
    create_type=False,
)
half_day_type = postgresql.ENUM("morning", "afternoon", name="half_day_type", create_type=False)
leave_priority = postgresql.ENUM("low", "medium", "high", "urgent", name="leave_priority", create_type=False)
audit_actor_type = postgresql.ENUM(
    "EMPLOYEE",
    "MANAGER",
    "ADMIN",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)

ALL_ENUMS = (
    employee_role,
    device_type,
    attendance_status,
    leave_type,
    leave_status,
    half_day_type,
    leave_priority,
    audit_actor_type,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def _punch_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(f"{prefix}_lat", sa.Float(), nullable=True),
        sa.Column(f"{prefix}_lon", sa.Float(), nullable=True),
        sa.Column(f"{prefix}_accuracy_m", sa.Float(), nullable=True),
        sa.Column(f"{prefix}_address", sa.String(length=500), nullable=True),
        sa.Column(f"{prefix}_device", device_type, nullable=True),
        sa.Column(f"{prefix}_ip", sa.String(length=128), nullable=True),
        sa.Column(f"{prefix}_user_agent", sa.String(length=1024), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_code", sa.String(length=32), nullable=False),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", employee_role, nullable=False, server_default=sa.text("'employee'")),
        sa.Column("department", sa.String(length=100), nullable=False),
        sa.Column("position", sa.String(length=100), nullable=True),
        sa.Column("manager_id", sa.Integer(), nullable=True),
        sa.Column("annual_balance", sa.Float(), nullable=False, server_default=sa.text("20")),
        sa.Column("sick_balance", sa.Float(), nullable=False, server_default=sa.text("10")),
        sa.Column("personal_balance", sa.Float(), nullable=False, server_default=sa.text("5")),
        sa.Column("maternity_balance", sa.Float(), nullable=False, server_default=sa.text("90")),
        sa.Column("paternity_balance", sa.Float(), nullable=False, server_default=sa.text("14")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["manager_id"], ["employees.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("email", name="uq_employees_email"),
        sa.CheckConstraint("annual_balance >= 0", name="ck_employees_annual_balance_non_negative"),
        sa.CheckConstraint("sick_balance >= 0", name="ck_employees_sick_balance_non_negative"),
        sa.CheckConstraint("personal_balance >= 0", name="ck_employees_personal_balance_non_negative"),
        sa.CheckConstraint("maternity_balance >= 0", name="ck_employees_maternity_balance_non_negative"),
        sa.CheckConstraint("paternity_balance >= 0", name="ck_employees_paternity_balance_non_negative"),
    )
    op.create_index("ix_employees_employee_code", "employees", ["employee_code"], unique=True)
    op.create_index("ix_employees_manager_id", "employees", ["manager_id"], unique=False)

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        *_punch_columns("punch_in"),
        *_punch_columns("punch_out"),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", attendance_status, nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["approved_by_id"], ["employees.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_id", "work_date", name="uq_attendance_records_employee_day"),
        sa.CheckConstraint("total_hours >= 0", name="ck_attendance_records_total_hours_non_negative"),
        sa.CheckConstraint(
            "punch_out_at IS NULL OR (punch_in_at IS NOT NULL AND punch_out_at >= punch_in_at)",
            name="ck_attendance_records_punch_order",
        ),
    )
    op.create_index("ix_attendance_records_employee_id", "attendance_records", ["employee_id"], unique=False)
    op.create_index("ix_attendance_records_work_date", "attendance_records", ["work_date"], unique=False)

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=False),
        sa.Column("status", leave_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("is_half_day", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("half_day_type", half_day_type, nullable=True),
        sa.Column("priority", leave_priority, nullable=False, server_default=sa.text("'medium'")),
        sa.Column("emergency_contact_name", sa.String(length=100), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(length=32), nullable=True),
        sa.Column("emergency_contact_relationship", sa.String(length=50), nullable=True),
        sa.Column("work_handover", sa.String(length=1000), nullable=True),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["approved_by_id"], ["employees.id"], ondelete="SET NULL"),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_range"),
        sa.CheckConstraint("total_days > 0", name="ck_leave_requests_total_days_positive"),
    )
    op.create_index("ix_leave_requests_employee_start", "leave_requests", ["employee_id", "start_date"], unique=False)
    op.create_index("ix_leave_requests_status_start", "leave_requests", ["status", "start_date"], unique=False)

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("holiday_date", name="uq_holidays_holiday_date"),
    )

    op.create_table(
        "system_config",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("office_latitude", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("office_longitude", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("office_address", sa.String(length=500), nullable=False, server_default=sa.text("'Office Address'")),
        sa.Column("location_validation_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("max_distance_km", sa.Float(), nullable=False, server_default=sa.text("100")),
        sa.Column("work_start_time", sa.Time(), nullable=False, server_default=sa.text("'09:00:00'")),
        sa.Column("work_end_time", sa.Time(), nullable=False, server_default=sa.text("'17:00:00'")),
        sa.Column("late_grace_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(
            "max_distance_km >= 0 AND max_distance_km <= 10000",
            name="ck_system_config_max_distance_range",
        ),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("system_config")
    op.drop_table("holidays")
    op.drop_index("ix_leave_requests_status_start", table_name="leave_requests")
    op.drop_index("ix_leave_requests_employee_start", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_index("ix_attendance_records_work_date", table_name="attendance_records")
    op.drop_index("ix_attendance_records_employee_id", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index("ix_employees_manager_id", table_name="employees")
    op.drop_index("ix_employees_employee_code", table_name="employees")
    op.drop_table("employees")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
