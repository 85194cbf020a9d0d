from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from attendance_app.db import get_db
from attendance_app.errors import NotFound
from attendance_app.models import Employee, EmployeeRole
from attendance_app.routers.context import audit_action, client_ip, pagination, user_agent
from attendance_app.schemas import (
    AttendanceCorrectionRequest,
    AttendanceHistoryData,
    AttendanceHistoryResponse,
    AttendanceRecordData,
    AttendanceRecordRead,
    AttendanceRecordResponse,
    AttendanceSummaryRead,
    AttendanceTodayData,
    AttendanceTodayResponse,
    PunchRequest,
    PunchResponse,
    PunchResultData,
)
from attendance_app.security import ensure_can_access_employee, get_current_employee, require_roles
from attendance_app.services.attendance import (
    PunchContext,
    can_punch_in,
    can_punch_out,
    correct_attendance_record,
    day_state,
    get_attendance_record,
    get_today_record,
    list_attendance_history,
    perform_punch_in,
    perform_punch_out,
)

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


def _punch_context(payload: PunchRequest, request: Request) -> PunchContext:
    return PunchContext(
        latitude=payload.location.latitude,
        longitude=payload.location.longitude,
        accuracy_m=payload.location.accuracy,
        address=payload.location.address,
        device=payload.device,
        ip=client_ip(request),
        user_agent=user_agent(request),
        notes=payload.notes,
    )


def _load_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found.")
    return employee


@router.post("/punch-in", response_model=PunchResponse)
def punch_in(
    payload: PunchRequest,
    request: Request,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> PunchResponse:
    request.state.employee_id = employee.id
    record, location_check = perform_punch_in(db, employee=employee, context=_punch_context(payload, request))
    request.state.event_id = record.id
    request.state.distance_km = location_check.distance_km
    audit_action(
        db,
        request,
        actor=employee,
        action="ATTENDANCE_PUNCH_IN",
        entity_type="attendance_record",
        entity_id=record.id,
        details={"work_date": record.work_date.isoformat(), "distance_km": location_check.distance_km},
    )
    return PunchResponse(
        message="Punched in successfully",
        data=PunchResultData(
            attendance=AttendanceRecordRead.from_record(record),
            distance_km=location_check.distance_km,
        ),
    )


@router.post("/punch-out", response_model=PunchResponse)
def punch_out(
    payload: PunchRequest,
    request: Request,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> PunchResponse:
    request.state.employee_id = employee.id
    record, location_check = perform_punch_out(db, employee=employee, context=_punch_context(payload, request))
    request.state.event_id = record.id
    request.state.distance_km = location_check.distance_km
    audit_action(
        db,
        request,
        actor=employee,
        action="ATTENDANCE_PUNCH_OUT",
        entity_type="attendance_record",
        entity_id=record.id,
        details={
            "work_date": record.work_date.isoformat(),
            "total_hours": record.total_hours,
            "status": record.status.value if record.status else None,
        },
    )
    return PunchResponse(
        message="Punched out successfully",
        data=PunchResultData(
            attendance=AttendanceRecordRead.from_record(record),
            distance_km=location_check.distance_km,
        ),
    )


@router.get("/today", response_model=AttendanceTodayResponse)
def today_status(
    request: Request,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> AttendanceTodayResponse:
    request.state.employee_id = employee.id
    record = get_today_record(db, employee_id=employee.id)
    return AttendanceTodayResponse(
        message="Today's attendance",
        data=AttendanceTodayData(
            status=day_state(record),
            can_punch_in=can_punch_in(record),
            can_punch_out=can_punch_out(record),
            attendance=AttendanceRecordRead.from_record(record) if record is not None else None,
        ),
    )


@router.get("/history", response_model=AttendanceHistoryResponse)
def attendance_history(
    request: Request,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    employee_id: int | None = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> AttendanceHistoryResponse:
    target_id = employee.id
    if employee_id is not None and employee_id != employee.id:
        ensure_can_access_employee(employee, _load_employee(db, employee_id))
        target_id = employee_id
    request.state.employee_id = target_id

    records, total, summary = list_attendance_history(
        db,
        employee_id=target_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return AttendanceHistoryResponse(
        message="Attendance history",
        data=AttendanceHistoryData(
            attendance=[AttendanceRecordRead.from_record(record) for record in records],
            pagination=pagination(page=page, limit=limit, total=total),
            summary=AttendanceSummaryRead(
                total_days=summary.total_days,
                total_hours=summary.total_hours,
                present_days=summary.present_days,
                absent_days=summary.absent_days,
                late_days=summary.late_days,
                half_days=summary.half_days,
            ),
        ),
    )


@router.get("/{record_id}", response_model=AttendanceRecordResponse)
def attendance_detail(
    record_id: int,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> AttendanceRecordResponse:
    record = get_attendance_record(db, record_id)
    if record.employee_id != employee.id:
        ensure_can_access_employee(employee, _load_employee(db, record.employee_id))
    return AttendanceRecordResponse(
        message="Attendance record",
        data=AttendanceRecordData(attendance=AttendanceRecordRead.from_record(record)),
    )


@router.put("/{record_id}", response_model=AttendanceRecordResponse)
def correct_attendance(
    record_id: int,
    payload: AttendanceCorrectionRequest,
    request: Request,
    db: Session = Depends(get_db),
    employee: Employee = Depends(require_roles(EmployeeRole.MANAGER, EmployeeRole.ADMIN)),
) -> AttendanceRecordResponse:
    record = get_attendance_record(db, record_id)
    ensure_can_access_employee(employee, _load_employee(db, record.employee_id))
    changes = payload.model_dump(exclude_unset=True)
    record = correct_attendance_record(db, record_id=record_id, corrected_by=employee, changes=changes)
    request.state.employee_id = record.employee_id
    audit_action(
        db,
        request,
        actor=employee,
        action="ATTENDANCE_CORRECTED",
        entity_type="attendance_record",
        entity_id=record.id,
        details=payload.model_dump(mode="json", exclude_unset=True),
    )
    return AttendanceRecordResponse(
        message="Attendance updated successfully",
        data=AttendanceRecordData(attendance=AttendanceRecordRead.from_record(record)),
    )
