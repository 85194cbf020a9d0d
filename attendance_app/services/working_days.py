from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_app.models import Holiday

SUNDAY = 6


class WorkingDayCalendar:
    """Monday to Saturday are working days unless the date is a holiday."""

    def __init__(self, holidays: Iterable[date] = ()):
        self._holidays = frozenset(holidays)

    @property
    def holidays(self) -> frozenset[date]:
        return self._holidays

    def is_working_day(self, day: date) -> bool:
        if day in self._holidays:
            return False
        return day.weekday() != SUNDAY

    def iter_working_days(self, start_date: date, end_date: date) -> Iterator[date]:
        cursor = start_date
        while cursor <= end_date:
            if self.is_working_day(cursor):
                yield cursor
            cursor += timedelta(days=1)

    def count_leave_days(self, start_date: date, end_date: date, *, is_half_day: bool = False) -> float:
        per_day = 0.5 if is_half_day else 1.0
        return float(sum(per_day for _ in self.iter_working_days(start_date, end_date)))


def load_calendar(db: Session, start_date: date, end_date: date) -> WorkingDayCalendar:
    holiday_dates = db.scalars(
        select(Holiday.holiday_date).where(
            Holiday.holiday_date >= start_date,
            Holiday.holiday_date <= end_date,
        )
    ).all()
    return WorkingDayCalendar(holiday_dates)
