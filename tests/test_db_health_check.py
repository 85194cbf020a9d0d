from __future__ import annotations

import importlib.util
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from attendance_app.db import Base
from attendance_app.models import Employee, LeaveRequest, LeaveStatus, LeaveType

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "db_health_check.py"


def _load_script():  # type: ignore[no-untyped-def]
    spec = importlib.util.spec_from_file_location("db_health_check", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)  # type: ignore[arg-type]
    spec.loader.exec_module(module)  # type: ignore[union-attr]
    return module


class DbHealthCheckTests(unittest.TestCase):
    def setUp(self) -> None:
        self.script = _load_script()
        self.engine = create_engine("sqlite://", poolclass=StaticPool)
        Base.metadata.create_all(self.engine)
        with self.engine.begin() as connection:
            connection.execute(text("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)"))
            connection.execute(text("INSERT INTO alembic_version (version_num) VALUES ('0001_initial')"))
        self.db = sessionmaker(bind=self.engine, expire_on_commit=False)()
        self.employee = Employee(
            employee_code="E1",
            first_name="Ada",
            last_name="Lane",
            email="ada@example.com",
            department="Support",
        )
        self.db.add(self.employee)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def _checks(self) -> dict[str, str]:
        report = self.script.run(self.engine)
        return {item["name"]: item["status"] for item in report["checks"]}

    def _leave(self, start: date, end: date, status: LeaveStatus) -> None:
        self.db.add(
            LeaveRequest(
                employee_id=self.employee.id,
                leave_type=LeaveType.ANNUAL,
                start_date=start,
                end_date=end,
                total_days=1.0,
                reason="Scheduled time off",
                status=status,
            )
        )
        self.db.commit()

    def test_clean_database_passes(self) -> None:
        checks = self._checks()

        self.assertEqual(checks["alembic_version"], "ok")
        self.assertEqual(checks["migration_up_to_date"], "ok")
        self.assertEqual(checks["missing_tables"], "ok")
        self.assertEqual(checks["duplicate_attendance_per_day"], "ok")
        self.assertEqual(checks["punch_out_before_punch_in"], "ok")
        self.assertEqual(checks["negative_leave_balance"], "ok")
        self.assertEqual(checks["overlapping_active_leaves"], "ok")

    def test_overlapping_active_leaves_fail(self) -> None:
        self._leave(date(2026, 10, 26), date(2026, 10, 28), LeaveStatus.APPROVED)
        self._leave(date(2026, 10, 27), date(2026, 10, 27), LeaveStatus.PENDING)

        self.assertEqual(self._checks()["overlapping_active_leaves"], "fail")

    def test_cancelled_leaves_do_not_count_as_overlap(self) -> None:
        self._leave(date(2026, 10, 26), date(2026, 10, 28), LeaveStatus.CANCELLED)
        self._leave(date(2026, 10, 27), date(2026, 10, 27), LeaveStatus.PENDING)

        self.assertEqual(self._checks()["overlapping_active_leaves"], "ok")

    def test_stale_migration_is_a_warning(self) -> None:
        with self.engine.begin() as connection:
            connection.execute(text("UPDATE alembic_version SET version_num = '0000_old'"))

        self.assertEqual(self._checks()["migration_up_to_date"], "warn")


if __name__ == "__main__":
    unittest.main()
