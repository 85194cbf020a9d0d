from __future__ import annotations

import unittest
from datetime import date, datetime, time, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from attendance_app.db import Base
from attendance_app.errors import AlreadyPunchedIn, AlreadyPunchedOut, InvalidDateRange, InvalidLocation, NoPunchInFound
from attendance_app.models import AttendanceRecord, AttendanceStatus, Employee, EmployeeRole
from attendance_app.services.attendance import (
    PunchContext,
    _normalize_ts,
    can_punch_in,
    can_punch_out,
    correct_attendance_record,
    day_state,
    derive_status,
    list_attendance_history,
    local_day,
    perform_punch_in,
    perform_punch_out,
    worked_hours,
)
from attendance_app.services.system_config import WorkSchedule, update_system_config


def _build_session() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


def _utc(day: int, hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, second, tzinfo=timezone.utc)


OFFICE = PunchContext(latitude=0.0, longitude=0.0)


class AttendanceServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _build_session()
        self.employee = Employee(
            employee_code="E100",
            first_name="Ada",
            last_name="Lane",
            email="ada@example.com",
            role=EmployeeRole.EMPLOYEE,
            department="Engineering",
        )
        self.manager = Employee(
            employee_code="M100",
            first_name="Mira",
            last_name="Stone",
            email="mira@example.com",
            role=EmployeeRole.MANAGER,
            department="Engineering",
        )
        self.db.add_all([self.employee, self.manager])
        self.db.commit()

        tz_patcher = patch(
            "attendance_app.services.attendance._attendance_timezone",
            return_value=ZoneInfo("UTC"),
        )
        tz_patcher.start()
        self.addCleanup(tz_patcher.stop)

    def tearDown(self) -> None:
        self.db.close()

    def _record_count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(AttendanceRecord)) or 0

    def _work_day(self, day: int, arrive: tuple[int, int], leave: tuple[int, int]) -> AttendanceRecord:
        perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(day, *arrive))
        record, _ = perform_punch_out(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(day, *leave))
        return record


class PunchFlowTests(AttendanceServiceTestCase):
    def test_on_time_full_day_is_present(self) -> None:
        record, check = perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 8, 55))

        self.assertTrue(check.is_valid)
        self.assertEqual(record.work_date, date(2026, 10, 19))
        self.assertIsNone(record.punch_out_at)
        self.assertIsNone(record.status)
        self.assertEqual(day_state(record), "working")
        self.assertFalse(can_punch_in(record))
        self.assertTrue(can_punch_out(record))

        record, _ = perform_punch_out(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 17, 30))

        self.assertAlmostEqual(record.total_hours, 8.58, places=2)
        self.assertEqual(record.status, AttendanceStatus.PRESENT)
        self.assertEqual(day_state(record), "completed")
        self.assertFalse(can_punch_in(record))
        self.assertFalse(can_punch_out(record))

    def test_arrival_after_start_is_late(self) -> None:
        record = self._work_day(19, (9, 20), (17, 30))
        self.assertEqual(record.status, AttendanceStatus.LATE)

    def test_arrival_within_start_minute_is_on_time(self) -> None:
        perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 9, 0, 59))
        record, _ = perform_punch_out(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 17, 0))
        self.assertEqual(record.status, AttendanceStatus.PRESENT)

    def test_short_day_is_half_day(self) -> None:
        record = self._work_day(19, (8, 30), (11, 30))

        self.assertAlmostEqual(record.total_hours, 3.0, places=2)
        self.assertEqual(record.status, AttendanceStatus.HALF_DAY)

    def test_late_arrival_wins_over_short_day(self) -> None:
        record = self._work_day(19, (10, 0), (11, 0))
        self.assertEqual(record.status, AttendanceStatus.LATE)

    def test_grace_minutes_delay_lateness(self) -> None:
        update_system_config(self.db, changes={"late_grace_minutes": 15})

        record = self._work_day(19, (9, 10), (17, 30))
        self.assertEqual(record.status, AttendanceStatus.PRESENT)

    def test_second_punch_in_same_day_is_rejected(self) -> None:
        record, _ = perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 8, 55))
        first_punch_in = _normalize_ts(record.punch_in_at)

        with self.assertRaises(AlreadyPunchedIn):
            perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 10, 0))

        self.db.refresh(record)
        self.assertEqual(_normalize_ts(record.punch_in_at), first_punch_in)
        self.assertEqual(self._record_count(), 1)

    def test_concurrent_punch_in_hits_unique_day_constraint(self) -> None:
        record, _ = perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 8, 55))
        first_punch_in = _normalize_ts(record.punch_in_at)

        # The competing request read the day before the first insert committed.
        with patch("attendance_app.services.attendance._find_day_record", return_value=None):
            with self.assertRaises(AlreadyPunchedIn):
                perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 8, 56))

        self.db.refresh(record)
        self.assertEqual(_normalize_ts(record.punch_in_at), first_punch_in)
        self.assertEqual(self._record_count(), 1)

    def test_punch_in_after_completed_day_is_rejected(self) -> None:
        self._work_day(19, (8, 55), (17, 0))

        with self.assertRaises(AlreadyPunchedIn):
            perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 18, 0))

    def test_punch_out_without_punch_in_is_rejected(self) -> None:
        with self.assertRaises(NoPunchInFound):
            perform_punch_out(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 17, 0))
        self.assertEqual(self._record_count(), 0)

    def test_second_punch_out_is_rejected(self) -> None:
        self._work_day(19, (8, 55), (17, 0))

        with self.assertRaises(AlreadyPunchedOut):
            perform_punch_out(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 18, 0))

    def test_punch_out_next_day_does_not_close_previous_record(self) -> None:
        perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 22, 0))

        with self.assertRaises(NoPunchInFound):
            perform_punch_out(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(20, 2, 0))

    def test_new_day_allows_new_punch_in(self) -> None:
        self._work_day(19, (8, 55), (17, 0))
        record, _ = perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(20, 8, 50))

        self.assertEqual(record.work_date, date(2026, 10, 20))
        self.assertEqual(self._record_count(), 2)

    def test_employees_have_independent_days(self) -> None:
        perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 8, 55))
        record, _ = perform_punch_in(self.db, employee=self.manager, context=OFFICE, now_utc=_utc(19, 8, 56))

        self.assertEqual(record.employee_id, self.manager.id)
        self.assertEqual(self._record_count(), 2)

    def test_punch_in_stores_context(self) -> None:
        context = PunchContext(
            latitude=0.01,
            longitude=0.02,
            accuracy_m=12.5,
            address="Main gate",
            ip="10.0.0.5",
            user_agent="pytest",
            notes="Early start",
        )
        record, _ = perform_punch_in(self.db, employee=self.employee, context=context, now_utc=_utc(19, 8, 55))

        self.assertEqual(record.punch_in_lat, 0.01)
        self.assertEqual(record.punch_in_lon, 0.02)
        self.assertEqual(record.punch_in_accuracy_m, 12.5)
        self.assertEqual(record.punch_in_address, "Main gate")
        self.assertEqual(record.punch_in_ip, "10.0.0.5")
        self.assertEqual(record.notes, "Early start")


class LocationEnforcementTests(AttendanceServiceTestCase):
    def setUp(self) -> None:
        super().setUp()
        update_system_config(
            self.db,
            changes={
                "office_latitude": 0.0,
                "office_longitude": 0.0,
                "max_distance_km": 100.0,
                "location_validation_enabled": True,
            },
        )

    def test_far_punch_in_is_rejected_without_storing(self) -> None:
        far_away = PunchContext(latitude=1.8, longitude=0.0)

        with self.assertRaises(InvalidLocation) as ctx:
            perform_punch_in(self.db, employee=self.employee, context=far_away, now_utc=_utc(19, 8, 55))

        self.assertIn("Maximum allowed distance is 100km", ctx.exception.message)
        self.assertEqual(self._record_count(), 0)

    def test_far_punch_out_leaves_record_open(self) -> None:
        perform_punch_in(self.db, employee=self.employee, context=OFFICE, now_utc=_utc(19, 8, 55))

        with self.assertRaises(InvalidLocation):
            perform_punch_out(
                self.db,
                employee=self.employee,
                context=PunchContext(latitude=1.8, longitude=0.0),
                now_utc=_utc(19, 17, 0),
            )

        record = self.db.scalar(select(AttendanceRecord))
        self.assertIsNotNone(record)
        self.assertIsNone(record.punch_out_at)

    def test_nearby_punch_in_reports_distance(self) -> None:
        _, check = perform_punch_in(
            self.db,
            employee=self.employee,
            context=PunchContext(latitude=0.5, longitude=0.0),
            now_utc=_utc(19, 8, 55),
        )
        self.assertTrue(check.is_valid)
        self.assertAlmostEqual(check.distance_km or 0.0, 55.6, delta=0.1)


class AttendanceHelpersTests(unittest.TestCase):
    def test_worked_hours_rounds_to_two_places(self) -> None:
        self.assertEqual(worked_hours(_utc(19, 8, 55), _utc(19, 17, 30)), 8.58)

    def test_worked_hours_accepts_naive_values_as_utc(self) -> None:
        self.assertEqual(worked_hours(datetime(2026, 10, 19, 8, 0), _utc(19, 9, 30)), 1.5)

    def test_derive_status_uses_schedule(self) -> None:
        schedule = WorkSchedule(start=time(9, 0), end=time(17, 0))
        with patch(
            "attendance_app.services.attendance._attendance_timezone",
            return_value=ZoneInfo("UTC"),
        ):
            self.assertEqual(derive_status(_utc(19, 9, 0), 8.0, schedule), AttendanceStatus.PRESENT)
            self.assertEqual(derive_status(_utc(19, 9, 1), 8.0, schedule), AttendanceStatus.LATE)
            self.assertEqual(derive_status(_utc(19, 8, 0), 3.99, schedule), AttendanceStatus.HALF_DAY)
            self.assertEqual(derive_status(_utc(19, 8, 0), 4.0, schedule), AttendanceStatus.PRESENT)

    def test_local_day_follows_configured_timezone(self) -> None:
        with patch(
            "attendance_app.services.attendance._attendance_timezone",
            return_value=ZoneInfo("Europe/Istanbul"),
        ):
            self.assertEqual(local_day(_utc(19, 22, 30)), date(2026, 10, 20))
            self.assertEqual(local_day(_utc(19, 20, 30)), date(2026, 10, 19))

    def test_day_state_without_record(self) -> None:
        self.assertEqual(day_state(None), "not_started")
        self.assertTrue(can_punch_in(None))
        self.assertFalse(can_punch_out(None))


class AttendanceHistoryTests(AttendanceServiceTestCase):
    def test_history_is_paginated_newest_first_with_summary(self) -> None:
        self._work_day(19, (8, 55), (17, 0))
        self._work_day(20, (9, 30), (17, 0))
        self._work_day(21, (8, 50), (11, 0))

        items, total, summary = list_attendance_history(
            self.db,
            employee_id=self.employee.id,
            start_date=date(2026, 10, 1),
            end_date=date(2026, 10, 31),
            page=1,
            limit=2,
        )

        self.assertEqual(total, 3)
        self.assertEqual([item.work_date for item in items], [date(2026, 10, 21), date(2026, 10, 20)])
        self.assertEqual(summary.total_days, 3)
        self.assertEqual(summary.present_days, 1)
        self.assertEqual(summary.late_days, 1)
        self.assertEqual(summary.half_days, 1)
        self.assertAlmostEqual(summary.total_hours, 8.08 + 7.5 + 2.17, places=2)

    def test_history_filters_by_range(self) -> None:
        self._work_day(19, (8, 55), (17, 0))
        self._work_day(20, (8, 55), (17, 0))

        items, total, _ = list_attendance_history(
            self.db,
            employee_id=self.employee.id,
            start_date=date(2026, 10, 20),
            end_date=date(2026, 10, 20),
        )

        self.assertEqual(total, 1)
        self.assertEqual(items[0].work_date, date(2026, 10, 20))

    def test_history_rejects_inverted_range(self) -> None:
        with self.assertRaises(InvalidDateRange):
            list_attendance_history(
                self.db,
                employee_id=self.employee.id,
                start_date=date(2026, 10, 20),
                end_date=date(2026, 10, 19),
            )


class AttendanceCorrectionTests(AttendanceServiceTestCase):
    def test_manager_correction_sets_status_and_approval(self) -> None:
        record = self._work_day(19, (9, 20), (17, 30))

        corrected = correct_attendance_record(
            self.db,
            record_id=record.id,
            corrected_by=self.manager,
            changes={"status": "present", "notes": "Traffic incident", "is_approved": True},
            now_utc=_utc(20, 9, 0),
        )

        self.assertEqual(corrected.status, AttendanceStatus.PRESENT)
        self.assertEqual(corrected.notes, "Traffic incident")
        self.assertTrue(corrected.is_approved)
        self.assertEqual(corrected.approved_by_id, self.manager.id)
        self.assertIsNotNone(corrected.approved_at)


if __name__ == "__main__":
    unittest.main()
