"""Slot availability and booking conflict checks.

Everything here is a pure pass over caller-supplied appointments: no I/O and
no state kept between calls. Times are handled as minutes of the day, with the
end of the day expressed as 1440.
"""

from __future__ import annotations

import enum
from datetime import date, datetime, time, tzinfo
from itertools import islice
from typing import Iterable, Iterator, NamedTuple, Sequence

from dental_clinic.models.appointment import AppointmentStatus
from dental_clinic.services.records import MINUTES_PER_DAY, AppointmentRecord

DEFAULT_SLOT_INTERVAL_MINUTES = 30

TimeLike = time | int


def minute_of_day(value: TimeLike, *, end: bool = False) -> int:
    if isinstance(value, time):
        minutes = value.hour * 60 + value.minute
        if end and minutes == 0:
            return MINUTES_PER_DAY
        return minutes
    return int(value)


def time_from_minutes(minutes: int) -> time:
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"{minutes} is outside a single day")
    minutes %= MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(start: TimeLike, minutes: int) -> int:
    return minute_of_day(start) + minutes


def slot_grid(
    interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
    *,
    day_start: int = 0,
    day_end: int = MINUTES_PER_DAY,
) -> list[time]:
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    return [time_from_minutes(m) for m in range(day_start, day_end, interval_minutes)]


def _overlaps(start: int, end: int, a_start: int, a_end: int, include_contained: bool) -> bool:
    if a_start <= start < a_end or a_start < end <= a_end:
        return True
    # candidate wraps the existing appointment
    return include_contained and start <= a_start < end


def has_conflict(
    existing: Iterable[AppointmentRecord],
    on_date: date,
    start: TimeLike,
    end: TimeLike,
    *,
    include_contained: bool = True,
) -> bool:
    start_min = minute_of_day(start)
    end_min = minute_of_day(end, end=True)
    for appt in existing:
        if appt.appointment_date != on_date:
            continue
        if appt.status == AppointmentStatus.cancelled:
            continue
        if _overlaps(start_min, end_min, appt.start_minute, appt.end_minute, include_contained):
            return True
    return False


def _local(now: datetime, tz: tzinfo | None) -> datetime:
    if tz is not None and now.tzinfo is not None:
        return now.astimezone(tz)
    return now


def _seconds_of_day(moment: datetime) -> int:
    return moment.hour * 3600 + moment.minute * 60 + moment.second


def _starts_after(start_min: int, moment: datetime) -> bool:
    return start_min * 60 > _seconds_of_day(moment)


def can_schedule_at(
    on_date: date,
    start: TimeLike,
    now: datetime,
    *,
    tz: tzinfo | None = None,
) -> bool:
    local_now = _local(now, tz)
    today = local_now.date()
    if on_date < today:
        return False
    if on_date > today:
        return True
    return _starts_after(minute_of_day(start), local_now)


class AvailableSlots:
    """Free start slots for one day.

    Iterating is lazy and can be repeated; each pass works on the snapshot of
    appointments taken when the object was built.
    """

    def __init__(
        self,
        existing: Iterable[AppointmentRecord],
        on_date: date,
        grid: Iterable[TimeLike],
        slot_duration_minutes: int,
        now: datetime | None = None,
        *,
        tz: tzinfo | None = None,
        include_contained: bool = True,
    ):
        if slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be positive")
        self.on_date = on_date
        self.slot_duration_minutes = slot_duration_minutes
        self.include_contained = include_contained
        self._existing = tuple(a for a in existing if a.appointment_date == on_date)
        self._grid = tuple(sorted({minute_of_day(slot) for slot in grid}))
        self._now = _local(now, tz) if now is not None else None

    def __iter__(self) -> Iterator[time]:
        cutoff: datetime | None = None
        if self._now is not None:
            today = self._now.date()
            if self.on_date < today:
                return
            if self.on_date == today:
                cutoff = self._now
        for start in self._grid:
            if cutoff is not None and not _starts_after(start, cutoff):
                continue
            end = start + self.slot_duration_minutes
            if end > MINUTES_PER_DAY:
                continue
            if has_conflict(
                self._existing,
                self.on_date,
                start,
                end,
                include_contained=self.include_contained,
            ):
                continue
            yield time_from_minutes(start)


def available_slots(
    existing: Iterable[AppointmentRecord],
    on_date: date,
    grid: Iterable[TimeLike],
    slot_duration_minutes: int,
    now: datetime | None = None,
    *,
    tz: tzinfo | None = None,
    include_contained: bool = True,
) -> AvailableSlots:
    return AvailableSlots(
        existing,
        on_date,
        grid,
        slot_duration_minutes,
        now,
        tz=tz,
        include_contained=include_contained,
    )


def paginate_slots(slots: Iterable[time], limit: int | None) -> tuple[list[time], bool]:
    """First ``limit`` slots and whether more exist; ``None`` returns all."""
    if limit is None:
        return list(slots), False
    page = list(islice(slots, limit + 1))
    return page[:limit], len(page) > limit


class BookingIssue(str, enum.Enum):
    validation = "validation"
    past = "past"
    conflict = "conflict"


class BookingCheck(NamedTuple):
    ok: bool
    issue: BookingIssue | None = None
    reason: str | None = None


def validate_interval(start: TimeLike, end: TimeLike) -> tuple[bool, str | None]:
    start_min = minute_of_day(start)
    end_min = minute_of_day(end, end=True)
    if not 0 <= start_min < MINUTES_PER_DAY:
        return False, "Appointment start time is outside the day."
    if end_min > MINUTES_PER_DAY:
        return False, "Appointments must start and end on the same day."
    if end_min <= start_min:
        return False, "Appointment end time must be after start time."
    return True, None


def check_booking(
    existing: Sequence[AppointmentRecord],
    on_date: date,
    start: TimeLike,
    end: TimeLike,
    now: datetime,
    *,
    tz: tzinfo | None = None,
    include_contained: bool = True,
) -> BookingCheck:
    ok, reason = validate_interval(start, end)
    if not ok:
        return BookingCheck(False, BookingIssue.validation, reason)
    if not can_schedule_at(on_date, start, now, tz=tz):
        return BookingCheck(
            False,
            BookingIssue.past,
            "You cannot schedule an appointment in the past. Please choose a future time.",
        )
    if has_conflict(existing, on_date, start, end, include_contained=include_contained):
        return BookingCheck(
            False,
            BookingIssue.conflict,
            "This time slot overlaps with another appointment.",
        )
    return BookingCheck(True)
