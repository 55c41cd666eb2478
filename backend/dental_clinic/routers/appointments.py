from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_clinic.core.errors import (
    ConflictError,
    PastSchedulingError,
    TransitionError,
    ValidationError,
    WriteFailedError,
)
from dental_clinic.core.settings import settings
from dental_clinic.db.session import get_db
from dental_clinic.deps import RequestContext, get_clock, get_context
from dental_clinic.models.appointment import Appointment, AppointmentStatus, AppointmentType
from dental_clinic.schemas.appointment import (
    AppointmentCreate,
    AppointmentOut,
    AppointmentStatusUpdate,
    SlotsOut,
)
from dental_clinic.services.appointment_status import check_transition
from dental_clinic.services.audit import log_event, snapshot_model
from dental_clinic.services.clock import Clock
from dental_clinic.services.outcome import Err, persist
from dental_clinic.services.records import appointment_from_row
from dental_clinic.services.schedule import (
    BookingIssue,
    add_minutes,
    available_slots,
    check_booking,
    paginate_slots,
    slot_grid,
    time_from_minutes,
)

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _day_records(db: Session, clinic_id: str, on_date: date, dentist_id: str | None = None):
    stmt = select(Appointment).where(
        Appointment.clinic_id == clinic_id,
        Appointment.appointment_date == on_date,
        Appointment.status != AppointmentStatus.cancelled,
    )
    if dentist_id and settings.conflicts_per_dentist:
        stmt = stmt.where(Appointment.dentist_id == dentist_id)
    return [appointment_from_row(row) for row in db.scalars(stmt)]


def _get_appointment(db: Session, clinic_id: str, appointment_id: int) -> Appointment:
    appt = db.get(Appointment, appointment_id)
    if not appt or appt.clinic_id != clinic_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    return appt


@router.get("", response_model=list[AppointmentOut])
def list_appointments(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    date_filter: date | None = Query(default=None, alias="date"),
    dentist_id: str | None = Query(default=None),
    patient_id: str | None = Query(default=None),
    status_filter: AppointmentStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(Appointment).where(Appointment.clinic_id == ctx.clinic_id)
    if date_filter:
        stmt = stmt.where(Appointment.appointment_date == date_filter)
    if dentist_id:
        stmt = stmt.where(Appointment.dentist_id == dentist_id)
    if patient_id:
        stmt = stmt.where(Appointment.patient_id == patient_id)
    if status_filter:
        stmt = stmt.where(Appointment.status == status_filter)
    stmt = (
        stmt.order_by(Appointment.appointment_date.asc(), Appointment.start_time.asc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.scalars(stmt))


@router.get("/types", response_model=list[str])
def list_appointment_types(_ctx: RequestContext = Depends(get_context)):
    return [item.value for item in AppointmentType]


@router.get("/slots", response_model=SlotsOut)
def list_available_slots(
    date_value: date = Query(alias="date"),
    duration_minutes: int | None = Query(default=None, ge=5, le=480),
    dentist_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    duration = duration_minutes or settings.default_slot_duration_minutes
    now = clock.now()
    bookable = date_value >= now.date()
    if not bookable:
        return SlotsOut(date=date_value, duration_minutes=duration, bookable=False, slots=[])

    grid = slot_grid(
        settings.slot_interval_minutes,
        day_start=settings.slot_day_start_minutes,
        day_end=settings.slot_day_end_minutes,
    )
    slots = available_slots(
        _day_records(db, ctx.clinic_id, date_value, dentist_id),
        date_value,
        grid,
        duration,
        now,
        include_contained=settings.detect_contained_conflicts,
    )
    page, has_more = paginate_slots(slots, limit or settings.slot_page_size)
    return SlotsOut(
        date=date_value,
        duration_minutes=duration,
        bookable=True,
        slots=page,
        has_more=has_more,
    )


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    end_minute = add_minutes(payload.start_time, payload.duration_minutes)
    existing = _day_records(db, ctx.clinic_id, payload.appointment_date, payload.dentist_id)
    check = check_booking(
        existing,
        payload.appointment_date,
        payload.start_time,
        end_minute,
        clock.now(),
        include_contained=settings.detect_contained_conflicts,
    )
    if not check.ok:
        if check.issue == BookingIssue.past:
            raise PastSchedulingError(check.reason)
        if check.issue == BookingIssue.conflict:
            raise ConflictError(check.reason)
        raise ValidationError(check.reason)

    appt = Appointment(
        clinic_id=ctx.clinic_id,
        patient_id=payload.patient_id,
        dentist_id=payload.dentist_id,
        appointment_date=payload.appointment_date,
        start_time=payload.start_time,
        end_time=time_from_minutes(end_minute),
        appointment_type=payload.appointment_type,
        status=AppointmentStatus.scheduled,
        reason_for_visit=payload.reason_for_visit,
        notes=payload.notes,
        created_by=ctx.actor,
        updated_by=ctx.actor,
    )

    def write(session: Session, row: Appointment) -> None:
        session.add(row)
        session.flush()
        log_event(
            session,
            clinic_id=ctx.clinic_id,
            actor=ctx.actor,
            action="appointment.created",
            entity_type="appointment",
            entity_id=row.id,
            before_obj=None,
            after_obj=row,
            request_id=ctx.request_id,
            ip_address=ctx.ip_address,
        )

    outcome = persist(db, prior=None, tentative=appt, write=write, label="appointment booking")
    if isinstance(outcome, Err):
        if outcome.conflict:
            raise ConflictError("This time slot was just booked. Please choose another time.")
        raise WriteFailedError(outcome.reason)
    db.refresh(appt)
    return appt


@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    return _get_appointment(db, ctx.clinic_id, appointment_id)


@router.post("/{appointment_id}/status", response_model=AppointmentOut)
def update_appointment_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    appt = _get_appointment(db, ctx.clinic_id, appointment_id)
    ok, reason = check_transition(appt.status, payload.status)
    if not ok:
        raise TransitionError(reason)
    if appt.status == payload.status:
        return appt

    before_data = snapshot_model(appt)
    appt.status = payload.status
    appt.updated_by = ctx.actor
    if payload.status == AppointmentStatus.cancelled:
        appt.cancel_reason = payload.cancel_reason
        appt.cancelled_at = clock.now()
    log_event(
        db,
        clinic_id=ctx.clinic_id,
        actor=ctx.actor,
        action="appointment.status_changed",
        entity_type="appointment",
        entity_id=appt.id,
        before_data=before_data,
        after_obj=appt,
        request_id=ctx.request_id,
        ip_address=ctx.ip_address,
    )
    db.commit()
    db.refresh(appt)
    return appt
