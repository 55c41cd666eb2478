from datetime import date, timedelta
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_clinic.db.session import get_db
from dental_clinic.deps import RequestContext, get_clock, get_context
from dental_clinic.models.invoice import Invoice, Payment
from dental_clinic.schemas.reports import (
    MethodTotalOut,
    OutstandingReportOut,
    PatientBalanceOut,
    RevenueReportOut,
)
from dental_clinic.services.clock import Clock
from dental_clinic.services.finance_reports import patient_balance_summaries, payment_breakdown
from dental_clinic.services.invoice_aging import outstanding_aging
from dental_clinic.services.records import invoice_from_row, payment_from_row, to_money

router = APIRouter(prefix="/reports", tags=["reports"])


def _clinic_invoices(db: Session, clinic_id: str):
    stmt = select(Invoice).where(Invoice.clinic_id == clinic_id, Invoice.is_void.is_(False))
    return [invoice_from_row(row) for row in db.scalars(stmt)]


@router.get("/outstanding", response_model=OutstandingReportOut)
def outstanding_report(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
    as_of: date | None = Query(default=None),
):
    report = outstanding_aging(_clinic_invoices(db, ctx.clinic_id), as_of or clock.today())
    return OutstandingReportOut.model_validate(report)


@router.get("/patient-balances", response_model=list[PatientBalanceOut])
def patient_balances(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    patient_id: list[str] | None = Query(default=None),
    outstanding_only: bool = Query(default=False),
):
    invoices = _clinic_invoices(db, ctx.clinic_id)
    if patient_id:
        wanted = set(patient_id)
        invoices = [invoice for invoice in invoices if invoice.patient_id in wanted]
    summaries = patient_balance_summaries(invoices)
    rows = sorted(summaries.values(), key=lambda item: (-item.balance, item.patient_id))
    if outstanding_only:
        rows = [row for row in rows if row.balance > 0]
    return [PatientBalanceOut.model_validate(row) for row in rows]


@router.get("/revenue", response_model=RevenueReportOut)
def revenue_report(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
):
    end_date = end or clock.today()
    start_date = start or end_date - timedelta(days=29)
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Start date must be on or before end date"
        )
    stmt = (
        select(Payment)
        .join(Invoice, Invoice.id == Payment.invoice_id)
        .where(Payment.clinic_id == ctx.clinic_id, Invoice.is_void.is_(False))
        .where(Payment.payment_date >= start_date, Payment.payment_date <= end_date)
    )
    payments = [payment_from_row(row) for row in db.scalars(stmt)]
    breakdown, total = payment_breakdown(payments)
    average = to_money(total / len(payments)) if payments else Decimal("0.00")
    return RevenueReportOut(
        range={"start": start_date, "end": end_date},
        total_revenue=total,
        payment_count=len(payments),
        average_transaction=average,
        payment_breakdown=[MethodTotalOut.model_validate(item) for item in breakdown],
    )
