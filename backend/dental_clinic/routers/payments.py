from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_clinic.db.session import get_db
from dental_clinic.deps import RequestContext, get_context
from dental_clinic.models.invoice import Payment, PaymentMethod
from dental_clinic.schemas.invoice import PaymentOut

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[PaymentOut])
def list_payments(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    patient_id: str | None = Query(default=None),
    invoice_id: int | None = Query(default=None),
    method: PaymentMethod | None = Query(default=None),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(Payment).where(Payment.clinic_id == ctx.clinic_id)
    if patient_id:
        stmt = stmt.where(Payment.patient_id == patient_id)
    if invoice_id:
        stmt = stmt.where(Payment.invoice_id == invoice_id)
    if method is not None:
        stmt = stmt.where(Payment.payment_method == method)
    if start:
        stmt = stmt.where(Payment.payment_date >= start)
    if end:
        stmt = stmt.where(Payment.payment_date <= end)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    payment = db.get(Payment, payment_id)
    if not payment or payment.clinic_id != ctx.clinic_id:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment
