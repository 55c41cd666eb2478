from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status

from dental_clinic.services.clock import Clock, SystemClock, clinic_tz


def get_clinic_id(x_clinic_id: str | None = Header(default=None)) -> str:
    clinic_id = (x_clinic_id or "").strip()
    if not clinic_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-Clinic-Id header")
    return clinic_id


def get_clock() -> Clock:
    return SystemClock(clinic_tz())


@dataclass(frozen=True)
class RequestContext:
    clinic_id: str
    actor: str | None
    request_id: str | None
    ip_address: str | None


def get_context(
    request: Request,
    clinic_id: str = Depends(get_clinic_id),
    x_actor: str | None = Header(default=None),
    request_id: str | None = Header(default=None),
) -> RequestContext:
    return RequestContext(
        clinic_id=clinic_id,
        actor=(x_actor or "").strip() or None,
        request_id=request_id,
        ip_address=request.client.host if request.client else None,
    )
