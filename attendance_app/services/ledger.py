from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_app.errors import InsufficientBalance, NotFound
from attendance_app.models import Employee, LeaveType

LEDGER_BALANCE_FIELDS: dict[LeaveType, str] = {
    LeaveType.ANNUAL: "annual_balance",
    LeaveType.SICK: "sick_balance",
    LeaveType.PERSONAL: "personal_balance",
    LeaveType.MATERNITY: "maternity_balance",
    LeaveType.PATERNITY: "paternity_balance",
}

# Tolerates float noise; balances move in half-day steps.
BALANCE_EPSILON = 1e-9


def is_ledger_backed(leave_type: LeaveType) -> bool:
    return leave_type in LEDGER_BALANCE_FIELDS


def _format_days(value: float) -> str:
    return f"{value:g}"


def lock_employee(db: Session, employee_id: int) -> Employee:
    """Load the employee row with FOR UPDATE; serializes ledger work per employee."""
    employee = db.scalar(
        select(Employee)
        .where(Employee.id == employee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if employee is None:
        raise NotFound("Employee not found.")
    return employee


class LeaveBalanceLedger:
    def __init__(self, employee: Employee):
        self.employee = employee

    def available_balance(self, leave_type: LeaveType) -> float:
        field_name = LEDGER_BALANCE_FIELDS.get(leave_type)
        if field_name is None:
            raise ValueError(f"Leave type {leave_type.value} is not tracked by the ledger")
        return float(getattr(self.employee, field_name) or 0)

    def has_sufficient_balance(self, leave_type: LeaveType, days: float) -> bool:
        if not is_ledger_backed(leave_type):
            return True
        return days <= self.available_balance(leave_type) + BALANCE_EPSILON

    def ensure_sufficient_balance(self, leave_type: LeaveType, days: float) -> None:
        if self.has_sufficient_balance(leave_type, days):
            return
        raise InsufficientBalance(
            f"Insufficient {leave_type.value} leave balance. "
            f"Available: {_format_days(self.available_balance(leave_type))} days, "
            f"Required: {_format_days(days)} days"
        )

    def debit(self, leave_type: LeaveType, days: float) -> float | None:
        if days <= 0:
            raise ValueError("Debit amount must be positive")
        if not is_ledger_backed(leave_type):
            return None
        self.ensure_sufficient_balance(leave_type, days)
        new_balance = max(0.0, round(self.available_balance(leave_type) - days, 2))
        setattr(self.employee, LEDGER_BALANCE_FIELDS[leave_type], new_balance)
        return new_balance

    def credit(self, leave_type: LeaveType, days: float) -> float | None:
        if days <= 0:
            raise ValueError("Credit amount must be positive")
        if not is_ledger_backed(leave_type):
            return None
        new_balance = round(self.available_balance(leave_type) + days, 2)
        setattr(self.employee, LEDGER_BALANCE_FIELDS[leave_type], new_balance)
        return new_balance

    def snapshot(self) -> dict[str, float]:
        return {
            leave_type.value: self.available_balance(leave_type)
            for leave_type in LEDGER_BALANCE_FIELDS
        }
