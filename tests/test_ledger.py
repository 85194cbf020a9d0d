from __future__ import annotations

import unittest

from attendance_app.errors import InsufficientBalance
from attendance_app.models import Employee, LeaveType
from attendance_app.services.ledger import LeaveBalanceLedger, is_ledger_backed


def _employee(**balances: float) -> Employee:
    values = {
        "annual_balance": 5.0,
        "sick_balance": 1.0,
        "personal_balance": 0.0,
        "maternity_balance": 0.0,
        "paternity_balance": 0.0,
    }
    values.update(balances)
    return Employee(
        employee_code="E1",
        first_name="Ada",
        last_name="Lane",
        email="ada@example.com",
        department="Engineering",
        **values,
    )


class LeaveBalanceLedgerTests(unittest.TestCase):
    def test_debit_reduces_balance(self) -> None:
        employee = _employee()
        new_balance = LeaveBalanceLedger(employee).debit(LeaveType.ANNUAL, 3.0)

        self.assertEqual(new_balance, 2.0)
        self.assertEqual(employee.annual_balance, 2.0)

    def test_debit_beyond_balance_raises_and_keeps_balance(self) -> None:
        employee = _employee()

        with self.assertRaises(InsufficientBalance) as ctx:
            LeaveBalanceLedger(employee).debit(LeaveType.SICK, 2.0)

        self.assertEqual(
            ctx.exception.message,
            "Insufficient sick leave balance. Available: 1 days, Required: 2 days",
        )
        self.assertEqual(employee.sick_balance, 1.0)

    def test_debit_of_entire_balance_reaches_zero(self) -> None:
        employee = _employee()
        self.assertEqual(LeaveBalanceLedger(employee).debit(LeaveType.ANNUAL, 5.0), 0.0)

    def test_half_day_debit(self) -> None:
        employee = _employee(personal_balance=1.0)
        self.assertEqual(LeaveBalanceLedger(employee).debit(LeaveType.PERSONAL, 0.5), 0.5)

    def test_untracked_types_bypass_ledger(self) -> None:
        employee = _employee()
        ledger = LeaveBalanceLedger(employee)

        self.assertFalse(is_ledger_backed(LeaveType.BEREAVEMENT))
        self.assertTrue(ledger.has_sufficient_balance(LeaveType.BEREAVEMENT, 30.0))
        self.assertIsNone(ledger.debit(LeaveType.OTHER, 4.0))
        self.assertIsNone(ledger.credit(LeaveType.OTHER, 4.0))
        with self.assertRaises(ValueError):
            ledger.available_balance(LeaveType.OTHER)

    def test_credit_increases_balance(self) -> None:
        employee = _employee()
        self.assertEqual(LeaveBalanceLedger(employee).credit(LeaveType.ANNUAL, 1.5), 6.5)

    def test_non_positive_amounts_are_rejected(self) -> None:
        ledger = LeaveBalanceLedger(_employee())

        with self.assertRaises(ValueError):
            ledger.debit(LeaveType.ANNUAL, 0)
        with self.assertRaises(ValueError):
            ledger.credit(LeaveType.ANNUAL, -1.0)

    def test_snapshot_lists_tracked_balances(self) -> None:
        snapshot = LeaveBalanceLedger(_employee()).snapshot()

        self.assertEqual(
            snapshot,
            {"annual": 5.0, "sick": 1.0, "personal": 0.0, "maternity": 0.0, "paternity": 0.0},
        )


if __name__ == "__main__":
    unittest.main()
