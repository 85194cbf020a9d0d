from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from math import ceil
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from attendance_app.errors import (
    AlreadyPunchedIn,
    AlreadyPunchedOut,
    InvalidDateRange,
    InvalidLocation,
    NoPunchInFound,
    NotFound,
)
from attendance_app.models import AttendanceRecord, AttendanceStatus, DeviceType, Employee, SystemConfig
from attendance_app.settings import get_settings
from attendance_app.services.location import GeoPoint, GeoValidator, LocationCheck
from attendance_app.services.system_config import (
    WorkSchedule,
    get_system_config,
    office_policy,
    work_schedule,
)

logger = logging.getLogger("attendance_app.attendance")

DayState = Literal["not_started", "working", "completed"]

DEFAULT_HISTORY_DAYS = 30


@dataclass(frozen=True)
class PunchContext:
    latitude: float
    longitude: float
    accuracy_m: float | None = None
    address: str | None = None
    device: DeviceType = DeviceType.WEB
    ip: str | None = None
    user_agent: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class AttendanceSummary:
    total_days: int
    total_hours: float
    present_days: int
    absent_days: int
    late_days: int
    half_days: int


def _normalize_ts(ts_utc: datetime | None) -> datetime:
    if ts_utc is None:
        return datetime.now(timezone.utc)

    if ts_utc.tzinfo is None:
        return ts_utc.replace(tzinfo=timezone.utc)

    return ts_utc.astimezone(timezone.utc)


@lru_cache
def _attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or "UTC"
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("attendance_timezone_invalid", extra={"timezone": raw_name})
        return ZoneInfo("UTC")


def local_day(ts_utc: datetime | None = None) -> date:
    return _normalize_ts(ts_utc).astimezone(_attendance_timezone()).date()


def local_today() -> date:
    return local_day(None)


def can_punch_in(record: AttendanceRecord | None) -> bool:
    return record is None or record.punch_in_at is None


def can_punch_out(record: AttendanceRecord | None) -> bool:
    return record is not None and record.punch_in_at is not None and record.punch_out_at is None


def day_state(record: AttendanceRecord | None) -> DayState:
    if record is None or record.punch_in_at is None:
        return "not_started"
    if record.punch_out_at is None:
        return "working"
    return "completed"


def worked_hours(punch_in_at: datetime, punch_out_at: datetime) -> float:
    seconds = (_normalize_ts(punch_out_at) - _normalize_ts(punch_in_at)).total_seconds()
    return round(max(0.0, seconds) / 3600, 2)


def derive_status(punch_in_at: datetime, total_hours: float, schedule: WorkSchedule) -> AttendanceStatus:
    # Lateness wins over duration; compared at minute precision in local time.
    local_in = _normalize_ts(punch_in_at).astimezone(_attendance_timezone())
    arrival_minute = local_in.hour * 60 + local_in.minute
    if arrival_minute > schedule.late_after_minute:
        return AttendanceStatus.LATE
    if total_hours < schedule.standard_hours / 2:
        return AttendanceStatus.HALF_DAY
    return AttendanceStatus.PRESENT


def _find_day_record(
    db: Session,
    *,
    employee_id: int,
    work_date: date,
    for_update: bool = False,
) -> AttendanceRecord | None:
    stmt = select(AttendanceRecord).where(
        AttendanceRecord.employee_id == employee_id,
        AttendanceRecord.work_date == work_date,
    )
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.scalar(stmt)


def _check_location(config: SystemConfig, context: PunchContext) -> LocationCheck:
    validator = GeoValidator(office_policy(config))
    check = validator.validate(GeoPoint(latitude=context.latitude, longitude=context.longitude))
    if not check.is_valid:
        raise InvalidLocation(check.message)
    return check


def get_today_record(
    db: Session,
    *,
    employee_id: int,
    now_utc: datetime | None = None,
) -> AttendanceRecord | None:
    return _find_day_record(db, employee_id=employee_id, work_date=local_day(now_utc))


def perform_punch_in(
    db: Session,
    *,
    employee: Employee,
    context: PunchContext,
    now_utc: datetime | None = None,
) -> tuple[AttendanceRecord, LocationCheck]:
    punched_at = _normalize_ts(now_utc)
    work_date = local_day(punched_at)
    config = get_system_config(db)

    record = _find_day_record(db, employee_id=employee.id, work_date=work_date, for_update=True)
    if not can_punch_in(record):
        db.rollback()
        raise AlreadyPunchedIn()

    try:
        location_check = _check_location(config, context)
    except InvalidLocation:
        db.rollback()
        raise

    if record is None:
        record = AttendanceRecord(
            employee_id=employee.id,
            work_date=work_date,
            total_hours=0.0,
            is_approved=True,
        )
        db.add(record)

    record.punch_in_at = punched_at
    record.punch_in_lat = context.latitude
    record.punch_in_lon = context.longitude
    record.punch_in_accuracy_m = context.accuracy_m
    record.punch_in_address = context.address
    record.punch_in_device = context.device
    record.punch_in_ip = context.ip
    record.punch_in_user_agent = context.user_agent
    if context.notes:
        record.notes = context.notes

    try:
        db.commit()
    except IntegrityError as exc:
        # Lost the race on uq_attendance_records_employee_day.
        db.rollback()
        raise AlreadyPunchedIn() from exc
    db.refresh(record)

    logger.info(
        "punch_in_recorded",
        extra={
            "employee_id": employee.id,
            "attendance_id": record.id,
            "work_date": work_date,
            "distance_km": location_check.distance_km,
        },
    )
    return record, location_check


def perform_punch_out(
    db: Session,
    *,
    employee: Employee,
    context: PunchContext,
    now_utc: datetime | None = None,
) -> tuple[AttendanceRecord, LocationCheck]:
    punched_at = _normalize_ts(now_utc)
    work_date = local_day(punched_at)
    config = get_system_config(db)
    schedule = work_schedule(config)

    record = _find_day_record(db, employee_id=employee.id, work_date=work_date, for_update=True)
    if record is None or record.punch_in_at is None:
        db.rollback()
        raise NoPunchInFound()
    if record.punch_out_at is not None:
        db.rollback()
        raise AlreadyPunchedOut()

    try:
        location_check = _check_location(config, context)
    except InvalidLocation:
        db.rollback()
        raise

    punch_in_at = _normalize_ts(record.punch_in_at)
    # Server clock stepped backwards since punch-in.
    punched_at = max(punched_at, punch_in_at)

    record.punch_out_at = punched_at
    record.punch_out_lat = context.latitude
    record.punch_out_lon = context.longitude
    record.punch_out_accuracy_m = context.accuracy_m
    record.punch_out_address = context.address
    record.punch_out_device = context.device
    record.punch_out_ip = context.ip
    record.punch_out_user_agent = context.user_agent
    record.total_hours = worked_hours(punch_in_at, punched_at)
    record.status = derive_status(punch_in_at, record.total_hours, schedule)
    if context.notes:
        record.notes = context.notes

    db.commit()
    db.refresh(record)

    logger.info(
        "punch_out_recorded",
        extra={
            "employee_id": employee.id,
            "attendance_id": record.id,
            "work_date": work_date,
            "total_hours": record.total_hours,
            "status": record.status,
        },
    )
    return record, location_check


def get_attendance_record(db: Session, record_id: int) -> AttendanceRecord:
    record = db.get(AttendanceRecord, record_id)
    if record is None:
        raise NotFound("Attendance record not found.")
    return record


def summarize_attendance(records: list[AttendanceRecord]) -> AttendanceSummary:
    return AttendanceSummary(
        total_days=len(records),
        total_hours=round(sum(record.total_hours or 0.0 for record in records), 2),
        present_days=sum(1 for record in records if record.status == AttendanceStatus.PRESENT),
        absent_days=sum(1 for record in records if record.status == AttendanceStatus.ABSENT),
        late_days=sum(1 for record in records if record.status == AttendanceStatus.LATE),
        half_days=sum(1 for record in records if record.status == AttendanceStatus.HALF_DAY),
    )


def list_attendance_history(
    db: Session,
    *,
    employee_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[AttendanceRecord], int, AttendanceSummary]:
    range_end = end_date or local_today()
    range_start = start_date or (range_end - timedelta(days=DEFAULT_HISTORY_DAYS))
    if range_end < range_start:
        raise InvalidDateRange("End date cannot be before start date.")

    filters = (
        AttendanceRecord.employee_id == employee_id,
        AttendanceRecord.work_date >= range_start,
        AttendanceRecord.work_date <= range_end,
    )
    total = db.scalar(select(func.count()).select_from(AttendanceRecord).where(*filters)) or 0
    items = list(
        db.scalars(
            select(AttendanceRecord)
            .where(*filters)
            .order_by(AttendanceRecord.work_date.desc(), AttendanceRecord.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
    )
    all_in_range = list(db.scalars(select(AttendanceRecord).where(*filters)).all())
    return items, int(total), summarize_attendance(all_in_range)


def page_count(total: int, limit: int) -> int:
    return ceil(total / limit) if limit > 0 else 0


def correct_attendance_record(
    db: Session,
    *,
    record_id: int,
    corrected_by: Employee,
    changes: dict[str, object],
    now_utc: datetime | None = None,
) -> AttendanceRecord:
    record = db.scalar(
        select(AttendanceRecord)
        .where(AttendanceRecord.id == record_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if record is None:
        raise NotFound("Attendance record not found.")

    if "status" in changes and changes["status"] is not None:
        record.status = AttendanceStatus(changes["status"])
    if "notes" in changes:
        record.notes = changes["notes"]  # type: ignore[assignment]
    if "is_approved" in changes and changes["is_approved"] is not None:
        record.is_approved = bool(changes["is_approved"])
        record.approved_by_id = corrected_by.id
        record.approved_at = _normalize_ts(now_utc)

    db.commit()
    db.refresh(record)
    logger.info(
        "attendance_corrected",
        extra={
            "attendance_id": record.id,
            "corrected_by": corrected_by.id,
            "fields": sorted(changes),
        },
    )
    return record
