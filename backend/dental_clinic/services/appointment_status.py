from __future__ import annotations

from dental_clinic.models.appointment import AppointmentStatus

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.completed, AppointmentStatus.cancelled, AppointmentStatus.no_show}
)

_ALLOWED: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.scheduled: frozenset({AppointmentStatus.confirmed}) | TERMINAL_STATUSES,
    AppointmentStatus.confirmed: TERMINAL_STATUSES,
    AppointmentStatus.completed: frozenset(),
    AppointmentStatus.cancelled: frozenset(),
    AppointmentStatus.no_show: frozenset(),
}


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    if current == target:
        return True
    return target in _ALLOWED[current]


def check_transition(
    current: AppointmentStatus, target: AppointmentStatus
) -> tuple[bool, str | None]:
    if can_transition(current, target):
        return True, None
    if is_terminal(current):
        return False, f"Appointment is already {current.value} and cannot be changed."
    return False, f"Cannot move an appointment from {current.value} to {target.value}."
