from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import extract, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from attendance_app.errors import ApiError, NotFound
from attendance_app.models import Holiday

logger = logging.getLogger("attendance_app.holidays")


def _duplicate_date_error(holiday_date: date) -> ApiError:
    return ApiError(
        status_code=400,
        code="HOLIDAY_DATE_TAKEN",
        message=f"A holiday already exists on {holiday_date.isoformat()}.",
    )


def list_holidays(db: Session, *, year: int | None = None) -> list[Holiday]:
    stmt = select(Holiday).order_by(Holiday.holiday_date.asc())
    if year is not None:
        stmt = stmt.where(extract("year", Holiday.holiday_date) == year)
    return list(db.scalars(stmt).all())


def get_holiday(db: Session, holiday_id: int) -> Holiday:
    holiday = db.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFound("Holiday not found.")
    return holiday


def create_holiday(db: Session, *, holiday_date: date, name: str, description: str | None = None) -> Holiday:
    holiday = Holiday(holiday_date=holiday_date, name=name, description=description)
    db.add(holiday)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _duplicate_date_error(holiday_date) from exc
    db.refresh(holiday)
    logger.info("holiday_created", extra={"holiday_id": holiday.id, "holiday_date": holiday_date})
    return holiday


def update_holiday(db: Session, *, holiday_id: int, changes: dict[str, Any]) -> Holiday:
    holiday = get_holiday(db, holiday_id)
    for key in ("holiday_date", "name", "description"):
        if key in changes:
            setattr(holiday, key, changes[key])
    requested_date = holiday.holiday_date
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _duplicate_date_error(requested_date) from exc
    db.refresh(holiday)
    logger.info("holiday_updated", extra={"holiday_id": holiday.id, "fields": sorted(changes)})
    return holiday


def delete_holiday(db: Session, *, holiday_id: int) -> None:
    holiday = get_holiday(db, holiday_id)
    db.delete(holiday)
    db.commit()
    logger.info("holiday_deleted", extra={"holiday_id": holiday_id})
