from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from attendance_app.db import get_db
from attendance_app.models import Employee, EmployeeRole, SystemConfig
from attendance_app.routers.context import audit_action
from attendance_app.schemas import (
    HolidayCreate,
    HolidayData,
    HolidayListData,
    HolidayListResponse,
    HolidayRead,
    HolidayResponse,
    HolidayUpdate,
    LeaveBalanceAdjustRequest,
    LeaveBalanceData,
    LeaveBalanceResponse,
    SuccessResponse,
    SystemConfigData,
    SystemConfigRead,
    SystemConfigResponse,
    SystemConfigUpdate,
)
from attendance_app.security import get_current_employee, require_roles
from attendance_app.services.holidays import create_holiday, delete_holiday, list_holidays, update_holiday
from attendance_app.services.leaves import adjust_leave_balance
from attendance_app.services.ledger import LeaveBalanceLedger
from attendance_app.services.system_config import get_system_config, reset_system_config, update_system_config

router = APIRouter(prefix="/api", tags=["admin"])

require_admin = require_roles(EmployeeRole.ADMIN)


def _config_response(message: str, config: SystemConfig) -> SystemConfigResponse:
    return SystemConfigResponse(
        message=message,
        data=SystemConfigData(config=SystemConfigRead.model_validate(config)),
    )


@router.get("/holidays", response_model=HolidayListResponse)
def get_holidays(
    year: int | None = Query(default=None, ge=1970, le=9999),
    db: Session = Depends(get_db),
    _employee: Employee = Depends(get_current_employee),
) -> HolidayListResponse:
    holidays = list_holidays(db, year=year)
    return HolidayListResponse(
        message="Holidays",
        data=HolidayListData(holidays=[HolidayRead.model_validate(item) for item in holidays]),
    )


@router.post("/holidays", response_model=HolidayResponse)
def add_holiday(
    payload: HolidayCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: Employee = Depends(require_admin),
) -> HolidayResponse:
    holiday = create_holiday(
        db,
        holiday_date=payload.holiday_date,
        name=payload.name,
        description=payload.description,
    )
    response = HolidayResponse(
        message="Holiday created successfully",
        data=HolidayData(holiday=HolidayRead.model_validate(holiday)),
    )
    audit_action(
        db,
        request,
        actor=admin,
        action="HOLIDAY_CREATED",
        entity_type="holiday",
        entity_id=response.data.holiday.id,
        details=payload.model_dump(mode="json"),
    )
    return response


@router.put("/holidays/{holiday_id}", response_model=HolidayResponse)
def edit_holiday(
    holiday_id: int,
    payload: HolidayUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: Employee = Depends(require_admin),
) -> HolidayResponse:
    # Only description is nullable; a null date or name leaves the field as is.
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "description"
    }
    holiday = update_holiday(db, holiday_id=holiday_id, changes=changes)
    response = HolidayResponse(
        message="Holiday updated successfully",
        data=HolidayData(holiday=HolidayRead.model_validate(holiday)),
    )
    audit_action(
        db,
        request,
        actor=admin,
        action="HOLIDAY_UPDATED",
        entity_type="holiday",
        entity_id=holiday_id,
        details=payload.model_dump(mode="json", exclude_unset=True),
    )
    return response


@router.delete("/holidays/{holiday_id}", response_model=SuccessResponse)
def remove_holiday(
    holiday_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: Employee = Depends(require_admin),
) -> SuccessResponse:
    delete_holiday(db, holiday_id=holiday_id)
    audit_action(
        db,
        request,
        actor=admin,
        action="HOLIDAY_DELETED",
        entity_type="holiday",
        entity_id=holiday_id,
    )
    return SuccessResponse(message="Holiday deleted successfully")


@router.get("/config", response_model=SystemConfigResponse)
def read_config(
    db: Session = Depends(get_db),
    _employee: Employee = Depends(get_current_employee),
) -> SystemConfigResponse:
    return _config_response("System configuration", get_system_config(db))


@router.put("/config", response_model=SystemConfigResponse)
def write_config(
    payload: SystemConfigUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: Employee = Depends(require_admin),
) -> SystemConfigResponse:
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    config = update_system_config(db, changes=changes)
    response = _config_response("System configuration updated successfully", config)
    audit_action(
        db,
        request,
        actor=admin,
        action="SYSTEM_CONFIG_UPDATED",
        entity_type="system_config",
        entity_id=config.id,
        details=payload.model_dump(mode="json", exclude_unset=True),
    )
    return response


@router.post("/config/reset", response_model=SystemConfigResponse)
def reset_config(
    request: Request,
    db: Session = Depends(get_db),
    admin: Employee = Depends(require_admin),
) -> SystemConfigResponse:
    config = reset_system_config(db)
    response = _config_response("System configuration reset to defaults", config)
    audit_action(
        db,
        request,
        actor=admin,
        action="SYSTEM_CONFIG_RESET",
        entity_type="system_config",
        entity_id=config.id,
    )
    return response


@router.post("/admin/employees/{employee_id}/leave-balance", response_model=LeaveBalanceResponse)
def adjust_balance(
    employee_id: int,
    payload: LeaveBalanceAdjustRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: Employee = Depends(require_admin),
) -> LeaveBalanceResponse:
    new_balance = adjust_leave_balance(
        db,
        employee_id=employee_id,
        leave_type=payload.leave_type,
        days=payload.days,
    )
    employee = db.get(Employee, employee_id)
    request.state.employee_id = employee_id
    response = LeaveBalanceResponse(
        message="Leave balance adjusted successfully",
        data=LeaveBalanceData(employee_id=employee_id, balances=LeaveBalanceLedger(employee).snapshot()),
    )
    audit_action(
        db,
        request,
        actor=admin,
        action="LEAVE_BALANCE_ADJUSTED",
        entity_type="employee",
        entity_id=employee_id,
        details={
            "leave_type": payload.leave_type.value,
            "days": payload.days,
            "new_balance": new_balance,
            "reason": payload.reason,
        },
    )
    return response
