import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dental_clinic.core.errors import ClinicError
from dental_clinic.core.settings import settings, validate_settings
from dental_clinic.db.session import engine
from dental_clinic.models import Base
from dental_clinic.routers.appointments import router as appointments_router
from dental_clinic.routers.audit import router as audit_router
from dental_clinic.routers.invoices import router as invoices_router
from dental_clinic.routers.payments import router as payments_router
from dental_clinic.routers.reports import router as reports_router

app = FastAPI(title="Dental Clinic API", version="0.1.0")
logger = logging.getLogger("dental_clinic.startup")


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    payload = exc.as_payload()
    request_id = request.headers.get("request-id")
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)
    logger.info(
        "Clinic API ready (env=%s, timezone=%s, slot interval=%s min).",
        settings.app_env,
        settings.clinic_timezone,
        settings.slot_interval_minutes,
    )


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(appointments_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(reports_router)
app.include_router(audit_router)
