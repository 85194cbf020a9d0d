from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from attendance_app.errors import (
    ApiError,
    Forbidden,
    InvalidDateRange,
    InvalidTransition,
    NotFound,
    OverlappingLeave,
)
from attendance_app.models import Employee, EmployeeRole, LeaveRequest, LeaveStatus, LeaveType
from attendance_app.schemas import LeaveRequestCreate
from attendance_app.services.attendance import _normalize_ts, local_today
from attendance_app.services.ledger import LeaveBalanceLedger, is_ledger_backed, lock_employee
from attendance_app.services.working_days import load_calendar

logger = logging.getLogger("attendance_app.leaves")

BLOCKING_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


def find_overlapping_leave(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_leave_id: int | None = None,
) -> LeaveRequest | None:
    stmt = select(LeaveRequest).where(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(BLOCKING_STATUSES),
        LeaveRequest.start_date <= end_date,
        LeaveRequest.end_date >= start_date,
    )
    if exclude_leave_id is not None:
        stmt = stmt.where(LeaveRequest.id != exclude_leave_id)
    return db.scalar(stmt.order_by(LeaveRequest.start_date.asc()).limit(1))


def ensure_can_decide(approver: Employee, owner: Employee) -> None:
    if approver.id == owner.id:
        raise Forbidden("You cannot decide on your own leave request.")
    if approver.role == EmployeeRole.ADMIN:
        return
    if approver.role == EmployeeRole.MANAGER and owner.manager_id == approver.id:
        return
    raise Forbidden("You can only decide leave requests of your team members.")


def create_leave_request(
    db: Session,
    *,
    employee_id: int,
    payload: LeaveRequestCreate,
    today: date | None = None,
) -> LeaveRequest:
    reference_day = today or local_today()
    if payload.end_date < payload.start_date:
        raise InvalidDateRange("End date cannot be before start date.")
    if payload.start_date < reference_day:
        raise InvalidDateRange("Start date cannot be in the past.")

    try:
        employee = lock_employee(db, employee_id)

        calendar = load_calendar(db, payload.start_date, payload.end_date)
        total_days = calendar.count_leave_days(
            payload.start_date,
            payload.end_date,
            is_half_day=payload.is_half_day,
        )
        if total_days <= 0:
            raise InvalidDateRange("Selected period contains no working days.")

        if find_overlapping_leave(
            db,
            employee_id=employee.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
        ) is not None:
            raise OverlappingLeave()

        LeaveBalanceLedger(employee).ensure_sufficient_balance(payload.leave_type, total_days)
    except ApiError:
        db.rollback()
        raise

    contact = payload.emergency_contact
    leave = LeaveRequest(
        employee_id=employee.id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_days=total_days,
        reason=payload.reason,
        status=LeaveStatus.PENDING,
        is_half_day=payload.is_half_day,
        half_day_type=payload.half_day_type,
        priority=payload.priority,
        emergency_contact_name=contact.name if contact else None,
        emergency_contact_phone=contact.phone if contact else None,
        emergency_contact_relationship=contact.relationship if contact else None,
        work_handover=payload.work_handover,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave_request_created",
        extra={
            "leave_id": leave.id,
            "employee_id": employee.id,
            "leave_type": leave.leave_type,
            "total_days": leave.total_days,
        },
    )
    return leave


def get_leave_request(db: Session, leave_id: int) -> LeaveRequest:
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise NotFound("Leave request not found.")
    return leave


def _load_pending_for_decision(db: Session, *, leave_id: int, approver: Employee) -> tuple[LeaveRequest, Employee]:
    leave = get_leave_request(db, leave_id)
    owner = lock_employee(db, leave.employee_id)
    ensure_can_decide(approver, owner)
    # Re-read under lock; the employee row lock always comes first.
    db.refresh(leave, with_for_update=True)
    if leave.status != LeaveStatus.PENDING:
        raise InvalidTransition(f"Leave request is already {leave.status.value}.")
    return leave, owner


def approve_leave_request(
    db: Session,
    *,
    leave_id: int,
    approver: Employee,
    now_utc: datetime | None = None,
) -> LeaveRequest:
    try:
        leave, owner = _load_pending_for_decision(db, leave_id=leave_id, approver=approver)
        new_balance = LeaveBalanceLedger(owner).debit(leave.leave_type, leave.total_days)
    except ApiError:
        db.rollback()
        raise

    leave.status = LeaveStatus.APPROVED
    leave.approved_by_id = approver.id
    leave.approved_at = _normalize_ts(now_utc)
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave_approved",
        extra={
            "leave_id": leave.id,
            "employee_id": leave.employee_id,
            "approver_id": approver.id,
            "leave_type": leave.leave_type,
            "total_days": leave.total_days,
            "remaining_balance": new_balance,
        },
    )
    return leave


def reject_leave_request(
    db: Session,
    *,
    leave_id: int,
    approver: Employee,
    rejection_reason: str | None,
    now_utc: datetime | None = None,
) -> LeaveRequest:
    reason = (rejection_reason or "").strip()
    if not reason:
        raise ApiError(
            status_code=400,
            code="REJECTION_REASON_REQUIRED",
            message="Rejection reason is required.",
        )

    try:
        leave, _owner = _load_pending_for_decision(db, leave_id=leave_id, approver=approver)
    except ApiError:
        db.rollback()
        raise

    leave.status = LeaveStatus.REJECTED
    leave.rejection_reason = reason
    leave.approved_by_id = approver.id
    leave.approved_at = _normalize_ts(now_utc)
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave_rejected",
        extra={"leave_id": leave.id, "employee_id": leave.employee_id, "approver_id": approver.id},
    )
    return leave


def cancel_leave_request(
    db: Session,
    *,
    leave_id: int,
    actor: Employee,
    now_utc: datetime | None = None,
) -> LeaveRequest:
    try:
        leave = db.get(
            LeaveRequest,
            leave_id,
            with_for_update=True,
            populate_existing=True,
        )
        if leave is None:
            raise NotFound("Leave request not found.")
        if leave.employee_id != actor.id and actor.role != EmployeeRole.ADMIN:
            raise Forbidden("You can only cancel your own leave requests.")
        if leave.status != LeaveStatus.PENDING:
            raise InvalidTransition("Only pending leave requests can be cancelled.")
    except ApiError:
        db.rollback()
        raise

    leave.status = LeaveStatus.CANCELLED
    leave.cancelled_at = _normalize_ts(now_utc)
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave_cancelled",
        extra={"leave_id": leave.id, "employee_id": leave.employee_id, "actor_id": actor.id},
    )
    return leave


def list_leave_requests(
    db: Session,
    *,
    employee_id: int | None = None,
    status: LeaveStatus | None = None,
    leave_type: LeaveType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[LeaveRequest], int]:
    filters = []
    if employee_id is not None:
        filters.append(LeaveRequest.employee_id == employee_id)
    if status is not None:
        filters.append(LeaveRequest.status == status)
    if leave_type is not None:
        filters.append(LeaveRequest.leave_type == leave_type)
    if start_date is not None:
        filters.append(LeaveRequest.start_date >= start_date)
    if end_date is not None:
        filters.append(LeaveRequest.start_date <= end_date)

    total = db.scalar(select(func.count()).select_from(LeaveRequest).where(*filters)) or 0
    items = list(
        db.scalars(
            select(LeaveRequest)
            .where(*filters)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
    )
    return items, int(total)


def list_pending_leave_requests(
    db: Session,
    *,
    approver: Employee,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[LeaveRequest], int]:
    filters = [LeaveRequest.status == LeaveStatus.PENDING]
    if approver.role != EmployeeRole.ADMIN:
        team_ids = select(Employee.id).where(Employee.manager_id == approver.id)
        filters.append(LeaveRequest.employee_id.in_(team_ids))

    total = db.scalar(select(func.count()).select_from(LeaveRequest).where(*filters)) or 0
    items = list(
        db.scalars(
            select(LeaveRequest)
            .where(*filters)
            .order_by(LeaveRequest.created_at.asc(), LeaveRequest.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
    )
    return items, int(total)


def adjust_leave_balance(
    db: Session,
    *,
    employee_id: int,
    leave_type: LeaveType,
    days: float,
) -> float | None:
    if not is_ledger_backed(leave_type):
        raise ApiError(
            status_code=400,
            code="LEAVE_TYPE_NOT_TRACKED",
            message=f"Leave type {leave_type.value} has no balance to adjust.",
        )

    try:
        employee = lock_employee(db, employee_id)
        ledger = LeaveBalanceLedger(employee)
        if days > 0:
            new_balance = ledger.credit(leave_type, days)
        else:
            new_balance = ledger.debit(leave_type, -days)
    except ApiError:
        db.rollback()
        raise

    db.commit()
    logger.info(
        "leave_balance_adjusted",
        extra={
            "employee_id": employee_id,
            "leave_type": leave_type,
            "days": days,
            "new_balance": new_balance,
        },
    )
    return new_balance
