from __future__ import annotations

import enum
from datetime import date, datetime, time

from sqlalchemy import Date, DateTime, Enum, Index, String, Text, Time, text
from sqlalchemy.orm import Mapped, mapped_column

from dental_clinic.models.base import AuditMixin, Base, ClinicScopedMixin


class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class AppointmentType(str, enum.Enum):
    checkup = "Checkup"
    cleaning = "Cleaning"
    filling = "Filling"
    root_canal = "Root Canal"
    extraction = "Extraction"
    crown = "Crown"
    other = "Other"


_ACTIVE_ONLY = text("status <> 'cancelled'")


class Appointment(Base, ClinicScopedMixin, AuditMixin):
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_dentist_slot",
            "clinic_id",
            "dentist_id",
            "appointment_date",
            "start_time",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index("ix_appointments_clinic_date", "clinic_id", "appointment_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dentist_id: Mapped[str] = mapped_column(String(64), nullable=False)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    # 00:00 as an end time means the end of the day
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    appointment_type: Mapped[AppointmentType] = mapped_column(
        Enum(AppointmentType, name="appointment_type"),
        nullable=False,
        default=AppointmentType.checkup,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        default=AppointmentStatus.scheduled,
        nullable=False,
    )
    reason_for_visit: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
