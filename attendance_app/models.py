from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_app.db import Base


def _enum_values(members: type[enum.Enum]) -> list[str]:
    return [member.value for member in members]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class EmployeeRole(str, enum.Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    LATE = "late"
    HALF_DAY = "half-day"
    ABSENT = "absent"
    LEAVE = "leave"


class DeviceType(str, enum.Enum):
    WEB = "web"
    MOBILE = "mobile"
    TABLET = "tablet"


class LeaveType(str, enum.Enum):
    ANNUAL = "annual"
    SICK = "sick"
    PERSONAL = "personal"
    MATERNITY = "maternity"
    PATERNITY = "paternity"
    BEREAVEMENT = "bereavement"
    OTHER = "other"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class HalfDayType(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class LeavePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AuditActorType(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        CheckConstraint("annual_balance >= 0", name="ck_employees_annual_balance_non_negative"),
        CheckConstraint("sick_balance >= 0", name="ck_employees_sick_balance_non_negative"),
        CheckConstraint("personal_balance >= 0", name="ck_employees_personal_balance_non_negative"),
        CheckConstraint("maternity_balance >= 0", name="ck_employees_maternity_balance_non_negative"),
        CheckConstraint("paternity_balance >= 0", name="ck_employees_paternity_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[EmployeeRole] = mapped_column(
        Enum(EmployeeRole, name="employee_role", values_callable=_enum_values),
        nullable=False,
        default=EmployeeRole.EMPLOYEE,
        server_default=text("'employee'"),
    )
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    annual_balance: Mapped[float] = mapped_column(Float, nullable=False, default=20, server_default=text("20"))
    sick_balance: Mapped[float] = mapped_column(Float, nullable=False, default=10, server_default=text("10"))
    personal_balance: Mapped[float] = mapped_column(Float, nullable=False, default=5, server_default=text("5"))
    maternity_balance: Mapped[float] = mapped_column(Float, nullable=False, default=90, server_default=text("90"))
    paternity_balance: Mapped[float] = mapped_column(Float, nullable=False, default=14, server_default=text("14"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    manager: Mapped[Employee | None] = relationship(remote_side=[id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_attendance_records_employee_day"),
        CheckConstraint("total_hours >= 0", name="ck_attendance_records_total_hours_non_negative"),
        CheckConstraint(
            "punch_out_at IS NULL OR (punch_in_at IS NOT NULL AND punch_out_at >= punch_in_at)",
            name="ck_attendance_records_punch_order",
        ),
        Index("ix_attendance_records_work_date", "work_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)

    punch_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    punch_in_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    punch_in_lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    punch_in_accuracy_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    punch_in_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    punch_in_device: Mapped[DeviceType | None] = mapped_column(
        Enum(DeviceType, name="device_type", values_callable=_enum_values),
        nullable=True,
    )
    punch_in_ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    punch_in_user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    punch_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    punch_out_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    punch_out_lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    punch_out_accuracy_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    punch_out_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    punch_out_device: Mapped[DeviceType | None] = mapped_column(
        Enum(DeviceType, name="device_type", values_callable=_enum_values),
        nullable=True,
    )
    punch_out_ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    punch_out_user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    status: Mapped[AttendanceStatus | None] = mapped_column(
        Enum(AttendanceStatus, name="attendance_status", values_callable=_enum_values),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    approved_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    employee: Mapped[Employee] = relationship(foreign_keys=[employee_id])
    approved_by: Mapped[Employee | None] = relationship(foreign_keys=[approved_by_id])


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_range"),
        CheckConstraint("total_days > 0", name="ck_leave_requests_total_days_positive"),
        Index("ix_leave_requests_employee_start", "employee_id", "start_date"),
        Index("ix_leave_requests_status_start", "status", "start_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        Enum(LeaveType, name="leave_type", values_callable=_enum_values),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String(1000), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        Enum(LeaveStatus, name="leave_status", values_callable=_enum_values),
        nullable=False,
        default=LeaveStatus.PENDING,
        server_default=text("'pending'"),
    )
    is_half_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    half_day_type: Mapped[HalfDayType | None] = mapped_column(
        Enum(HalfDayType, name="half_day_type", values_callable=_enum_values),
        nullable=True,
    )
    priority: Mapped[LeavePriority] = mapped_column(
        Enum(LeavePriority, name="leave_priority", values_callable=_enum_values),
        nullable=False,
        default=LeavePriority.MEDIUM,
        server_default=text("'medium'"),
    )
    emergency_contact_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(50), nullable=True)
    work_handover: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    employee: Mapped[Employee] = relationship(foreign_keys=[employee_id])
    approved_by: Mapped[Employee | None] = relationship(foreign_keys=[approved_by_id])


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class SystemConfig(Base):
    __tablename__ = "system_config"
    __table_args__ = (
        CheckConstraint(
            "max_distance_km >= 0 AND max_distance_km <= 10000",
            name="ck_system_config_max_distance_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    office_latitude: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    office_longitude: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    office_address: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="Office Address",
        server_default=text("'Office Address'"),
    )
    location_validation_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    max_distance_km: Mapped[float] = mapped_column(Float, nullable=False, default=100, server_default=text("100"))
    work_start_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        default=time(9, 0),
        server_default=text("'09:00:00'"),
    )
    work_end_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        default=time(17, 0),
        server_default=text("'17:00:00'"),
    )
    late_grace_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)
