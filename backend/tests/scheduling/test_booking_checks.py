from datetime import date, datetime, time

import pytest

from dental_clinic.models.appointment import AppointmentStatus
from dental_clinic.services.appointment_status import can_transition, check_transition, is_terminal
from dental_clinic.services.records import AppointmentRecord
from dental_clinic.services.schedule import BookingIssue, check_booking, validate_interval

DAY = date(2026, 3, 11)
NOW = datetime(2026, 3, 10, 12, 0)
EXISTING = [AppointmentRecord(appointment_date=DAY, start_time=time(10), end_time=time(11))]


def test_free_booking_passes():
    check = check_booking(EXISTING, DAY, time(11), time(11, 30), NOW)
    assert check.ok is True
    assert check.issue is None


def test_invalid_interval_is_reported_first():
    check = check_booking(EXISTING, date(2026, 3, 1), time(10, 30), time(10), NOW)
    assert check.ok is False
    assert check.issue == BookingIssue.validation


def test_past_is_reported_before_conflict():
    check = check_booking(EXISTING, DAY, time(10), time(10, 30), datetime(2026, 3, 11, 10, 0))
    assert check.issue == BookingIssue.past
    assert "past" in check.reason


def test_conflict_is_reported():
    check = check_booking(EXISTING, DAY, time(10, 30), time(11), NOW)
    assert check.ok is False
    assert check.issue == BookingIssue.conflict


@pytest.mark.parametrize(
    ("start", "end", "ok"),
    [
        (time(9), time(9, 30), True),
        (time(23, 30), time(0, 0), True),
        (time(9), time(9), False),
        (time(10), time(9), False),
        (time(23, 30), 1470, False),
    ],
)
def test_validate_interval(start, end, ok):
    assert validate_interval(start, end)[0] is ok


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (AppointmentStatus.scheduled, AppointmentStatus.confirmed, True),
        (AppointmentStatus.scheduled, AppointmentStatus.cancelled, True),
        (AppointmentStatus.scheduled, AppointmentStatus.completed, True),
        (AppointmentStatus.confirmed, AppointmentStatus.no_show, True),
        (AppointmentStatus.confirmed, AppointmentStatus.scheduled, False),
        (AppointmentStatus.completed, AppointmentStatus.cancelled, False),
        (AppointmentStatus.cancelled, AppointmentStatus.scheduled, False),
        (AppointmentStatus.no_show, AppointmentStatus.completed, False),
        (AppointmentStatus.cancelled, AppointmentStatus.cancelled, True),
    ],
)
def test_status_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_terminal_status_reason():
    assert is_terminal(AppointmentStatus.completed)
    assert not is_terminal(AppointmentStatus.confirmed)
    ok, reason = check_transition(AppointmentStatus.completed, AppointmentStatus.cancelled)
    assert ok is False
    assert "already completed" in reason
