from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from attendance_app.errors import ApiError
from attendance_app.models import SystemConfig
from attendance_app.services.location import OfficePolicy

logger = logging.getLogger("attendance_app.system_config")

SYSTEM_CONFIG_ID = 1

DEFAULT_CONFIG: dict[str, Any] = {
    "office_latitude": 0.0,
    "office_longitude": 0.0,
    "office_address": "Office Address",
    "location_validation_enabled": False,
    "max_distance_km": 100.0,
    "work_start_time": time(9, 0),
    "work_end_time": time(17, 0),
    "late_grace_minutes": 0,
}


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class WorkSchedule:
    start: time
    end: time
    grace_minutes: int = 0

    @property
    def late_after_minute(self) -> int:
        return _minutes_of_day(self.start) + max(0, self.grace_minutes)

    @property
    def standard_hours(self) -> float:
        span = _minutes_of_day(self.end) - _minutes_of_day(self.start)
        if span <= 0:
            span += 24 * 60
        return span / 60


def office_policy(config: SystemConfig) -> OfficePolicy:
    return OfficePolicy(
        latitude=config.office_latitude,
        longitude=config.office_longitude,
        max_distance_km=config.max_distance_km,
        validation_enabled=config.location_validation_enabled,
    )


def work_schedule(config: SystemConfig) -> WorkSchedule:
    return WorkSchedule(
        start=config.work_start_time,
        end=config.work_end_time,
        grace_minutes=config.late_grace_minutes,
    )


def get_system_config(db: Session) -> SystemConfig:
    config = db.scalar(select(SystemConfig).where(SystemConfig.id == SYSTEM_CONFIG_ID))
    if config is not None:
        return config

    config = SystemConfig(id=SYSTEM_CONFIG_ID, **DEFAULT_CONFIG)
    db.add(config)
    try:
        db.commit()
    except IntegrityError:
        # Another request created the singleton first.
        db.rollback()
        existing = db.scalar(select(SystemConfig).where(SystemConfig.id == SYSTEM_CONFIG_ID))
        if existing is None:
            raise
        return existing
    db.refresh(config)
    logger.info("system_config_initialized", extra={"config_id": config.id})
    return config


def _validate_schedule(start: time, end: time) -> None:
    if end <= start:
        raise ApiError(
            status_code=400,
            code="INVALID_WORK_HOURS",
            message="Work end time must be after work start time.",
        )


def update_system_config(db: Session, *, changes: dict[str, Any]) -> SystemConfig:
    config = get_system_config(db)
    unknown = sorted(key for key in changes if key not in DEFAULT_CONFIG)
    if unknown:
        raise ApiError(
            status_code=400,
            code="UNKNOWN_CONFIG_FIELD",
            message=f"Unknown configuration field(s): {', '.join(unknown)}",
        )

    start = changes.get("work_start_time", config.work_start_time)
    end = changes.get("work_end_time", config.work_end_time)
    _validate_schedule(start, end)

    for key, value in changes.items():
        setattr(config, key, value)
    db.commit()
    db.refresh(config)
    logger.info("system_config_updated", extra={"fields": sorted(changes)})
    return config


def reset_system_config(db: Session) -> SystemConfig:
    config = get_system_config(db)
    for key, value in DEFAULT_CONFIG.items():
        setattr(config, key, value)
    db.commit()
    db.refresh(config)
    logger.info("system_config_reset", extra={"config_id": config.id})
    return config
