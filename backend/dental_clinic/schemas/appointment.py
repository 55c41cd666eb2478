from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dental_clinic.models.appointment import AppointmentStatus, AppointmentType


class AppointmentCreate(BaseModel):
    patient_id: str = Field(min_length=1, max_length=64)
    dentist_id: str = Field(min_length=1, max_length=64)
    appointment_date: date
    start_time: time
    duration_minutes: int = Field(default=30, ge=5, le=480)
    appointment_type: AppointmentType
    reason_for_visit: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start_time")
    @classmethod
    def _whole_minutes(cls, value: time) -> time:
        if value.second or value.microsecond:
            raise ValueError("start_time must be on a whole minute")
        return value


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    cancel_reason: Optional[str] = Field(default=None, max_length=500)


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: str
    dentist_id: str
    appointment_date: date
    start_time: time
    end_time: time
    appointment_type: AppointmentType
    status: AppointmentStatus
    reason_for_visit: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SlotsOut(BaseModel):
    date: date
    duration_minutes: int
    bookable: bool
    slots: list[time]
    has_more: bool = False
