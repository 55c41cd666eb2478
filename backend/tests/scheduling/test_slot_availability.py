from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from dental_clinic.models.appointment import AppointmentStatus
from dental_clinic.services.records import AppointmentRecord
from dental_clinic.services.schedule import (
    available_slots,
    can_schedule_at,
    has_conflict,
    minute_of_day,
    paginate_slots,
    slot_grid,
    time_from_minutes,
)

DAY = date(2026, 3, 11)
BEFORE_DAY = datetime(2026, 3, 10, 12, 0)


def appt(start: time, end: time, status=AppointmentStatus.scheduled, on=DAY) -> AppointmentRecord:
    return AppointmentRecord(appointment_date=on, start_time=start, end_time=end, status=status)


def test_default_grid_covers_the_day_in_half_hours():
    grid = slot_grid()
    assert len(grid) == 48
    assert grid[0] == time(0, 0)
    assert grid[1] == time(0, 30)
    assert grid[-1] == time(23, 30)


def test_grid_respects_custom_window():
    grid = slot_grid(60, day_start=8 * 60, day_end=12 * 60)
    assert grid == [time(8), time(9), time(10), time(11)]


def test_grid_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        slot_grid(0)


def test_midnight_end_is_end_of_day():
    assert minute_of_day(time(0, 0), end=True) == 1440
    assert minute_of_day(time(0, 0)) == 0
    assert time_from_minutes(1440) == time(0, 0)
    with pytest.raises(ValueError):
        time_from_minutes(1441)


@pytest.mark.parametrize(
    ("start", "end", "expected"),
    [
        (time(10, 0), time(10, 30), True),
        (time(9, 30), time(10, 30), True),
        (time(10, 30), time(11, 30), True),
        (time(10, 15), time(10, 45), True),
        (time(11, 0), time(11, 30), False),
        (time(9, 0), time(10, 0), False),
        (time(9, 30), time(11, 30), False),
    ],
)
def test_edge_overlap_rule_without_containment(start, end, expected):
    existing = [appt(time(10, 0), time(11, 0))]
    assert has_conflict(existing, DAY, start, end, include_contained=False) is expected


def test_wrapping_booking_conflicts_when_containment_is_checked():
    existing = [appt(time(10, 0), time(11, 0))]
    assert has_conflict(existing, DAY, time(9, 30), time(11, 30)) is True
    assert has_conflict(existing, DAY, time(9, 30), time(11, 30), include_contained=False) is False


def test_cancelled_and_other_days_never_conflict():
    existing = [
        appt(time(10, 0), time(11, 0), status=AppointmentStatus.cancelled),
        appt(time(10, 0), time(11, 0), on=date(2026, 3, 12)),
    ]
    assert has_conflict(existing, DAY, time(10, 0), time(10, 30)) is False


def test_yielded_slots_never_conflict():
    existing = [
        appt(time(9, 0), time(10, 0)),
        appt(time(13, 30), time(14, 15)),
        appt(time(23, 0), time(0, 0)),
    ]
    for contained in (True, False):
        slots = available_slots(existing, DAY, slot_grid(), 45, BEFORE_DAY, include_contained=contained)
        for slot in slots:
            start = minute_of_day(slot)
            assert not has_conflict(existing, DAY, start, start + 45, include_contained=contained)


def test_busy_slots_are_removed():
    existing = [appt(time(9, 0), time(10, 0))]
    slots = list(available_slots(existing, DAY, slot_grid(), 30, BEFORE_DAY))
    assert time(9, 0) not in slots
    assert time(9, 30) not in slots
    assert time(8, 30) in slots
    assert time(10, 0) in slots
    assert len(slots) == 46


def test_past_day_has_no_slots():
    slots = available_slots([], date(2026, 3, 9), slot_grid(), 30, BEFORE_DAY)
    assert list(slots) == []


def test_today_only_offers_slots_strictly_after_now():
    now = datetime(2026, 3, 11, 9, 30, 0)
    slots = list(available_slots([], DAY, slot_grid(), 30, now))
    assert slots[0] == time(10, 0)

    now = datetime(2026, 3, 11, 9, 29, 59)
    slots = list(available_slots([], DAY, slot_grid(), 30, now))
    assert slots[0] == time(9, 30)


def test_slots_running_past_midnight_are_skipped():
    slots = list(available_slots([], DAY, slot_grid(), 60, BEFORE_DAY))
    assert slots[-1] == time(23, 0)
    slots = list(available_slots([], DAY, slot_grid(), 30, BEFORE_DAY))
    assert slots[-1] == time(23, 30)


def test_slot_iteration_is_repeatable_and_uses_a_snapshot():
    existing = [appt(time(9, 0), time(10, 0))]
    slots = available_slots(existing, DAY, slot_grid(), 30, BEFORE_DAY)
    first = list(slots)
    existing.append(appt(time(11, 0), time(12, 0)))
    assert list(slots) == first
    assert time(11, 0) in first


def test_duplicate_and_unsorted_grid_entries_are_normalised():
    grid = [time(10), time(9), time(10), 540]
    assert list(available_slots([], DAY, grid, 30, BEFORE_DAY)) == [time(9), time(10)]


def test_pagination_reports_more():
    slots = available_slots([], DAY, slot_grid(), 30, BEFORE_DAY)
    page, has_more = paginate_slots(slots, 16)
    assert len(page) == 16
    assert has_more is True
    page, has_more = paginate_slots(slots, 48)
    assert len(page) == 48
    assert has_more is False
    page, has_more = paginate_slots(slots, None)
    assert len(page) == 48
    assert has_more is False


def test_can_schedule_at_uses_clinic_timezone():
    london = ZoneInfo("Europe/London")
    now = datetime(2026, 7, 1, 8, 30, tzinfo=timezone.utc)
    assert can_schedule_at(date(2026, 7, 1), time(9, 30), now, tz=london) is False
    assert can_schedule_at(date(2026, 7, 1), time(10, 0), now, tz=london) is True
    assert can_schedule_at(date(2026, 6, 30), time(23, 30), now, tz=london) is False
    assert can_schedule_at(date(2026, 7, 2), time(0, 0), now, tz=london) is True
