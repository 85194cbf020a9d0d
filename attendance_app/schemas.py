from __future__ import annotations

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from attendance_app.models import (
    AttendanceRecord,
    AttendanceStatus,
    DeviceType,
    HalfDayType,
    LeavePriority,
    LeaveStatus,
    LeaveType,
)


class SuccessResponse(BaseModel):
    success: bool = True
    message: str


class PaginationRead(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# Attendance


class LocationPayload(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)
    address: str | None = Field(default=None, max_length=500)


class PunchRequest(BaseModel):
    location: LocationPayload
    device: DeviceType = DeviceType.WEB
    notes: str | None = Field(default=None, max_length=500)


class PunchRead(BaseModel):
    time: datetime
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    address: str | None = None
    device: DeviceType | None = None
    ip: str | None = None
    user_agent: str | None = None


class AttendanceRecordRead(BaseModel):
    id: int
    employee_id: int
    work_date: date
    punch_in: PunchRead | None = None
    punch_out: PunchRead | None = None
    total_hours: float
    status: AttendanceStatus | None = None
    notes: str | None = None
    is_approved: bool
    approved_by_id: int | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: AttendanceRecord) -> AttendanceRecordRead:
        punch_in = None
        if record.punch_in_at is not None:
            punch_in = PunchRead(
                time=record.punch_in_at,
                latitude=record.punch_in_lat,
                longitude=record.punch_in_lon,
                accuracy=record.punch_in_accuracy_m,
                address=record.punch_in_address,
                device=record.punch_in_device,
                ip=record.punch_in_ip,
                user_agent=record.punch_in_user_agent,
            )
        punch_out = None
        if record.punch_out_at is not None:
            punch_out = PunchRead(
                time=record.punch_out_at,
                latitude=record.punch_out_lat,
                longitude=record.punch_out_lon,
                accuracy=record.punch_out_accuracy_m,
                address=record.punch_out_address,
                device=record.punch_out_device,
                ip=record.punch_out_ip,
                user_agent=record.punch_out_user_agent,
            )
        return cls(
            id=record.id,
            employee_id=record.employee_id,
            work_date=record.work_date,
            punch_in=punch_in,
            punch_out=punch_out,
            total_hours=record.total_hours or 0.0,
            status=record.status,
            notes=record.notes,
            is_approved=record.is_approved,
            approved_by_id=record.approved_by_id,
            approved_at=record.approved_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class PunchResultData(BaseModel):
    attendance: AttendanceRecordRead
    distance_km: float | None = None


class PunchResponse(SuccessResponse):
    data: PunchResultData


class AttendanceTodayData(BaseModel):
    status: Literal["not_started", "working", "completed"]
    can_punch_in: bool
    can_punch_out: bool
    attendance: AttendanceRecordRead | None = None


class AttendanceTodayResponse(SuccessResponse):
    data: AttendanceTodayData


class AttendanceSummaryRead(BaseModel):
    total_days: int
    total_hours: float
    present_days: int
    absent_days: int
    late_days: int
    half_days: int


class AttendanceHistoryData(BaseModel):
    attendance: list[AttendanceRecordRead]
    pagination: PaginationRead
    summary: AttendanceSummaryRead


class AttendanceHistoryResponse(SuccessResponse):
    data: AttendanceHistoryData


class AttendanceRecordData(BaseModel):
    attendance: AttendanceRecordRead


class AttendanceRecordResponse(SuccessResponse):
    data: AttendanceRecordData


class AttendanceCorrectionRequest(BaseModel):
    status: AttendanceStatus | None = None
    notes: str | None = Field(default=None, max_length=500)
    is_approved: bool | None = None


# Leaves


class EmergencyContact(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=32)
    relationship: str | None = Field(default=None, max_length=50)


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=10, max_length=1000)
    is_half_day: bool = False
    half_day_type: HalfDayType | None = None
    priority: LeavePriority = LeavePriority.MEDIUM
    emergency_contact: EmergencyContact | None = None
    work_handover: str | None = Field(default=None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def validate_half_day(self) -> LeaveRequestCreate:
        if self.is_half_day and self.half_day_type is None:
            raise ValueError("half_day_type is required for half-day leave")
        if not self.is_half_day and self.half_day_type is not None:
            raise ValueError("half_day_type is only allowed for half-day leave")
        return self


class LeaveDecisionRequest(BaseModel):
    action: Literal["approve", "reject"] = "approve"
    rejection_reason: str | None = Field(default=None, min_length=10, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class LeaveRequestRead(BaseModel):
    id: int
    employee_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: float
    reason: str
    status: LeaveStatus
    is_half_day: bool
    half_day_type: HalfDayType | None = None
    priority: LeavePriority
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    work_handover: str | None = None
    approved_by_id: int | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveRequestData(BaseModel):
    leave: LeaveRequestRead


class LeaveRequestResponse(SuccessResponse):
    data: LeaveRequestData


class LeaveListData(BaseModel):
    leaves: list[LeaveRequestRead]
    pagination: PaginationRead


class LeaveListResponse(SuccessResponse):
    data: LeaveListData


class LeaveBalanceData(BaseModel):
    employee_id: int
    balances: dict[str, float]


class LeaveBalanceResponse(SuccessResponse):
    data: LeaveBalanceData


class LeaveBalanceAdjustRequest(BaseModel):
    leave_type: LeaveType
    days: float = Field(ge=-366, le=366)
    reason: str = Field(min_length=3, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def validate_days(self) -> LeaveBalanceAdjustRequest:
        if self.days == 0:
            raise ValueError("days must be non-zero")
        if (self.days * 2) != int(self.days * 2):
            raise ValueError("days must be a multiple of 0.5")
        return self


# Holidays


class HolidayCreate(BaseModel):
    holiday_date: date
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class HolidayUpdate(BaseModel):
    holiday_date: date | None = None
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class HolidayRead(BaseModel):
    id: int
    holiday_date: date
    name: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class HolidayData(BaseModel):
    holiday: HolidayRead


class HolidayResponse(SuccessResponse):
    data: HolidayData


class HolidayListData(BaseModel):
    holidays: list[HolidayRead]


class HolidayListResponse(SuccessResponse):
    data: HolidayListData


# System configuration


class SystemConfigRead(BaseModel):
    office_latitude: float
    office_longitude: float
    office_address: str
    location_validation_enabled: bool
    max_distance_km: float
    work_start_time: time
    work_end_time: time
    late_grace_minutes: int
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SystemConfigUpdate(BaseModel):
    office_latitude: float | None = Field(default=None, ge=-90, le=90)
    office_longitude: float | None = Field(default=None, ge=-180, le=180)
    office_address: str | None = Field(default=None, min_length=1, max_length=500)
    location_validation_enabled: bool | None = None
    max_distance_km: float | None = Field(default=None, ge=0, le=10000)
    work_start_time: time | None = None
    work_end_time: time | None = None
    late_grace_minutes: int | None = Field(default=None, ge=0, le=240)


class SystemConfigData(BaseModel):
    config: SystemConfigRead


class SystemConfigResponse(SuccessResponse):
    data: SystemConfigData
