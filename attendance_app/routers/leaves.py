from __future__ import annotations

from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from attendance_app.db import get_db
from attendance_app.errors import NotFound
from attendance_app.models import Employee, EmployeeRole, LeaveRequest, LeaveStatus, LeaveType
from attendance_app.routers.context import audit_action, pagination
from attendance_app.schemas import (
    LeaveBalanceData,
    LeaveBalanceResponse,
    LeaveDecisionRequest,
    LeaveListData,
    LeaveListResponse,
    LeaveRequestCreate,
    LeaveRequestData,
    LeaveRequestRead,
    LeaveRequestResponse,
)
from attendance_app.security import ensure_can_access_employee, get_current_employee, require_roles
from attendance_app.services.leaves import (
    approve_leave_request,
    cancel_leave_request,
    create_leave_request,
    get_leave_request,
    list_leave_requests,
    list_pending_leave_requests,
    reject_leave_request,
)
from attendance_app.services.ledger import LeaveBalanceLedger
from attendance_app.services.notifications import build_leave_decision_message, send_notification

router = APIRouter(prefix="/api/leaves", tags=["leaves"])


def _load_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found.")
    return employee


def _leave_response(message: str, leave: LeaveRequest) -> LeaveRequestResponse:
    return LeaveRequestResponse(
        message=message,
        data=LeaveRequestData(leave=LeaveRequestRead.model_validate(leave)),
    )


def _schedule_decision_notice(background_tasks: BackgroundTasks, db: Session, leave: LeaveRequest) -> None:
    owner = db.get(Employee, leave.employee_id)
    if owner is None:
        return
    message = build_leave_decision_message(
        leave,
        recipient_email=owner.email,
        recipient_name=owner.full_name,
    )
    background_tasks.add_task(send_notification, message)


@router.post("/request", response_model=LeaveRequestResponse)
def request_leave(
    payload: LeaveRequestCreate,
    request: Request,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> LeaveRequestResponse:
    request.state.employee_id = employee.id
    leave = create_leave_request(db, employee_id=employee.id, payload=payload)
    response = _leave_response("Leave request submitted successfully", leave)
    audit_action(
        db,
        request,
        actor=employee,
        action="LEAVE_REQUESTED",
        entity_type="leave_request",
        entity_id=leave.id,
        details={
            "leave_type": payload.leave_type.value,
            "start_date": payload.start_date.isoformat(),
            "end_date": payload.end_date.isoformat(),
            "total_days": response.data.leave.total_days,
        },
    )
    return response


@router.get("", response_model=LeaveListResponse)
def list_leaves(
    request: Request,
    status: LeaveStatus | None = Query(default=None),
    leave_type: LeaveType | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    employee_id: int | None = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> LeaveListResponse:
    target_id: int | None = employee.id
    if employee_id is not None and employee_id != employee.id:
        ensure_can_access_employee(employee, _load_employee(db, employee_id))
        target_id = employee_id
    elif employee_id is None and employee.role == EmployeeRole.ADMIN:
        target_id = None
    request.state.employee_id = target_id

    leaves, total = list_leave_requests(
        db,
        employee_id=target_id,
        status=status,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return LeaveListResponse(
        message="Leave requests",
        data=LeaveListData(
            leaves=[LeaveRequestRead.model_validate(item) for item in leaves],
            pagination=pagination(page=page, limit=limit, total=total),
        ),
    )


@router.get("/pending", response_model=LeaveListResponse)
def list_pending_leaves(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    approver: Employee = Depends(require_roles(EmployeeRole.MANAGER, EmployeeRole.ADMIN)),
) -> LeaveListResponse:
    leaves, total = list_pending_leave_requests(db, approver=approver, page=page, limit=limit)
    return LeaveListResponse(
        message="Pending leave requests",
        data=LeaveListData(
            leaves=[LeaveRequestRead.model_validate(item) for item in leaves],
            pagination=pagination(page=page, limit=limit, total=total),
        ),
    )


@router.get("/balance", response_model=LeaveBalanceResponse)
def leave_balance(
    employee_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> LeaveBalanceResponse:
    target = employee
    if employee_id is not None and employee_id != employee.id:
        target = _load_employee(db, employee_id)
        ensure_can_access_employee(employee, target)
    return LeaveBalanceResponse(
        message="Leave balance",
        data=LeaveBalanceData(employee_id=target.id, balances=LeaveBalanceLedger(target).snapshot()),
    )


@router.get("/{leave_id}", response_model=LeaveRequestResponse)
def leave_detail(
    leave_id: int,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> LeaveRequestResponse:
    leave = get_leave_request(db, leave_id)
    if leave.employee_id != employee.id:
        ensure_can_access_employee(employee, _load_employee(db, leave.employee_id))
    return _leave_response("Leave request", leave)


@router.put("/{leave_id}/approve", response_model=LeaveRequestResponse)
def decide_leave(
    leave_id: int,
    payload: LeaveDecisionRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    approver: Employee = Depends(require_roles(EmployeeRole.MANAGER, EmployeeRole.ADMIN)),
) -> LeaveRequestResponse:
    if payload.action == "approve":
        leave = approve_leave_request(db, leave_id=leave_id, approver=approver)
        action = "LEAVE_APPROVED"
        message = "Leave request approved successfully"
    else:
        leave = reject_leave_request(
            db,
            leave_id=leave_id,
            approver=approver,
            rejection_reason=payload.rejection_reason,
        )
        action = "LEAVE_REJECTED"
        message = "Leave request rejected successfully"

    request.state.employee_id = leave.employee_id
    response = _leave_response(message, leave)
    _schedule_decision_notice(background_tasks, db, leave)
    audit_action(
        db,
        request,
        actor=approver,
        action=action,
        entity_type="leave_request",
        entity_id=leave_id,
        details={
            "employee_id": response.data.leave.employee_id,
            "leave_type": response.data.leave.leave_type.value,
            "total_days": response.data.leave.total_days,
            "rejection_reason": response.data.leave.rejection_reason,
        },
    )
    return response


@router.put("/{leave_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave(
    leave_id: int,
    request: Request,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> LeaveRequestResponse:
    leave = cancel_leave_request(db, leave_id=leave_id, actor=employee)
    request.state.employee_id = leave.employee_id
    response = _leave_response("Leave request cancelled successfully", leave)
    audit_action(
        db,
        request,
        actor=employee,
        action="LEAVE_CANCELLED",
        entity_type="leave_request",
        entity_id=leave_id,
        details={"employee_id": response.data.leave.employee_id},
    )
    return response
