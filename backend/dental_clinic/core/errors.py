"""Application-level errors.

The scheduling and ledger engines report expected business outcomes as return
values. Routers translate a negative result into one of these exceptions and
the handler in ``dental_clinic.main`` renders it.
"""

from __future__ import annotations


class ClinicError(Exception):
    status_code = 400
    code = "clinic_error"
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def as_payload(self) -> dict:
        return {"detail": self.detail, "code": self.code, "retryable": self.retryable}


class ValidationError(ClinicError):
    status_code = 422
    code = "validation_error"


class ConflictError(ClinicError):
    status_code = 409
    code = "time_conflict"
    retryable = True


class PastSchedulingError(ClinicError):
    status_code = 409
    code = "past_scheduling"
    retryable = True


class TransitionError(ClinicError):
    status_code = 409
    code = "invalid_transition"


class WriteFailedError(ClinicError):
    status_code = 503
    code = "write_failed"
    retryable = True
