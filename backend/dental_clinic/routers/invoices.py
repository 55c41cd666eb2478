import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from dental_clinic.core.errors import TransitionError, ValidationError, WriteFailedError
from dental_clinic.core.settings import settings
from dental_clinic.db.session import get_db
from dental_clinic.deps import RequestContext, get_clock, get_context
from dental_clinic.models.invoice import Invoice, InvoiceItem, InvoiceStatus, Payment
from dental_clinic.schemas.invoice import (
    DiscountUpdate,
    InvoiceCreate,
    InvoiceOut,
    InvoiceSummaryOut,
    InvoiceVoid,
    OverdueRefreshOut,
    PaymentCreate,
    PaymentOut,
    StatementLineOut,
    StatementOut,
)
from dental_clinic.services.audit import log_event, snapshot_model
from dental_clinic.services.clock import Clock
from dental_clinic.services.invoice_aging import refresh_overdue
from dental_clinic.services.ledger import (
    apply_discount,
    apply_payment,
    build_statement,
    can_delete,
    create_invoice as build_invoice,
    validate_invoice_amounts,
    validate_payment,
)
from dental_clinic.services.outcome import Err, persist
from dental_clinic.services.records import (
    InvoiceSnapshot,
    LineItem,
    invoice_from_row,
    payment_from_row,
    to_money,
    write_invoice_snapshot,
)

logger = logging.getLogger("dental_clinic.writes")

router = APIRouter(prefix="/invoices", tags=["invoices"])


def format_invoice_number(invoice_id: int) -> str:
    return f"INV-{invoice_id:06d}"


def _get_invoice(db: Session, clinic_id: str, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice or invoice.clinic_id != clinic_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


def invoice_for_update(clinic_id: str, invoice_id: int):
    # row lock held until commit so concurrent payments see each other's totals
    return (
        select(Invoice)
        .where(Invoice.id == invoice_id, Invoice.clinic_id == clinic_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _lock_invoice(db: Session, clinic_id: str, invoice_id: int) -> Invoice:
    invoice = db.scalars(invoice_for_update(clinic_id, invoice_id)).first()
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@router.get("", response_model=list[InvoiceSummaryOut])
def list_invoices(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    patient_id: str | None = Query(default=None),
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    q: str | None = Query(default=None),
    include_void: bool = Query(default=True),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    stmt = select(Invoice).where(Invoice.clinic_id == ctx.clinic_id)
    if patient_id:
        stmt = stmt.where(Invoice.patient_id == patient_id)
    if status_filter is not None:
        stmt = stmt.where(Invoice.status == status_filter)
    if not include_void:
        stmt = stmt.where(Invoice.is_void.is_(False))
    if q:
        q_like = f"%{q.strip()}%"
        stmt = stmt.where(or_(Invoice.invoice_number.ilike(q_like), Invoice.patient_id.ilike(q_like)))
    stmt = stmt.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    items = [
        LineItem(
            description=item.description.strip(),
            quantity=item.quantity,
            unit_price=item.unit_price,
            tooth_number=item.tooth_number,
        )
        for item in payload.items
    ]
    ok, reason = validate_invoice_amounts(items, payload.discount_amount, payload.tax_amount)
    if not ok:
        raise ValidationError(reason)

    invoice_date = payload.invoice_date or clock.today()
    due_date = payload.due_date or invoice_date + timedelta(days=settings.invoice_due_days)
    if due_date < invoice_date:
        raise ValidationError("Due date cannot be before the invoice date.")

    snapshot = build_invoice(
        items,
        payload.discount_amount,
        payload.tax_amount,
        patient_id=payload.patient_id,
        invoice_date=invoice_date,
        due_date=due_date,
    )
    invoice = Invoice(
        clinic_id=ctx.clinic_id,
        patient_id=payload.patient_id,
        invoice_number="",
        invoice_date=invoice_date,
        due_date=due_date,
        payment_terms=payload.payment_terms,
        notes=payload.notes,
        created_by=ctx.actor,
        updated_by=ctx.actor,
    )
    write_invoice_snapshot(invoice, snapshot)
    invoice.items = [
        InvoiceItem(
            position=position,
            description=line.description,
            tooth_number=line.tooth_number,
            quantity=line.quantity,
            unit_price=to_money(line.unit_price),
            line_total=line.line_total,
        )
        for position, line in enumerate(snapshot.items)
    ]
    db.add(invoice)
    db.flush()
    invoice.invoice_number = format_invoice_number(invoice.id)
    log_event(
        db,
        clinic_id=ctx.clinic_id,
        actor=ctx.actor,
        action="invoice.created",
        entity_type="invoice",
        entity_id=invoice.id,
        before_obj=None,
        after_obj=invoice,
        request_id=ctx.request_id,
        ip_address=ctx.ip_address,
    )
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/refresh-overdue", response_model=OverdueRefreshOut)
def refresh_overdue_invoices(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    today = clock.today()
    stmt = select(Invoice).where(
        Invoice.clinic_id == ctx.clinic_id,
        Invoice.is_void.is_(False),
        Invoice.status != InvoiceStatus.draft,
    )
    checked = 0
    updated = 0
    for invoice in db.scalars(stmt):
        checked += 1
        current = invoice_from_row(invoice)
        refreshed = refresh_overdue(current, today)
        if refreshed.status == current.status:
            continue
        log_event(
            db,
            clinic_id=ctx.clinic_id,
            actor=ctx.actor,
            action="invoice.status_refreshed",
            entity_type="invoice",
            entity_id=invoice.id,
            before_data={"status": current.status.value},
            after_data={"status": refreshed.status.value},
            request_id=ctx.request_id,
            ip_address=ctx.ip_address,
        )
        invoice.status = refreshed.status
        updated += 1
    db.commit()
    if updated:
        logger.info("Refreshed overdue status on %s of %s invoices", updated, checked)
    return OverdueRefreshOut(as_of=today, checked=checked, updated=updated)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    return _get_invoice(db, ctx.clinic_id, invoice_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    invoice = _get_invoice(db, ctx.clinic_id, invoice_id)
    ok, reason = can_delete(invoice_from_row(invoice))
    if not ok:
        raise TransitionError(reason)
    log_event(
        db,
        clinic_id=ctx.clinic_id,
        actor=ctx.actor,
        action="invoice.deleted",
        entity_type="invoice",
        entity_id=invoice.id,
        before_obj=invoice,
        after_obj=None,
        request_id=ctx.request_id,
        ip_address=ctx.ip_address,
    )
    db.delete(invoice)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def add_payment(
    invoice_id: int,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    invoice = _lock_invoice(db, ctx.clinic_id, invoice_id)
    prior = invoice_from_row(invoice)
    ok, reason = validate_payment(
        prior, payload.amount, allow_overpayment=settings.allow_overpayment
    )
    if not ok:
        raise ValidationError(reason)

    tentative = apply_payment(prior, payload.amount)
    payment = Payment(
        clinic_id=ctx.clinic_id,
        invoice_id=invoice.id,
        patient_id=invoice.patient_id,
        payment_date=payload.payment_date or clock.today(),
        amount=to_money(payload.amount),
        payment_method=payload.payment_method,
        reference_number=payload.reference_number,
        notes=payload.notes,
        recorded_at=clock.now(),
        recorded_by=ctx.actor,
    )

    def write(session: Session, snapshot: InvoiceSnapshot) -> None:
        session.add(payment)
        write_invoice_snapshot(invoice, snapshot)
        invoice.updated_by = ctx.actor
        session.flush()
        log_event(
            session,
            clinic_id=ctx.clinic_id,
            actor=ctx.actor,
            action="payment.recorded",
            entity_type="invoice",
            entity_id=invoice.id,
            before_data={
                "amount_paid": str(prior.amount_paid),
                "balance": str(prior.balance),
                "status": prior.status.value,
            },
            after_obj=invoice,
            request_id=ctx.request_id,
            ip_address=ctx.ip_address,
        )
        if prior.status != InvoiceStatus.paid and snapshot.status == InvoiceStatus.paid:
            log_event(
                session,
                clinic_id=ctx.clinic_id,
                actor=ctx.actor,
                action="invoice.paid",
                entity_type="invoice",
                entity_id=invoice.id,
                before_obj=None,
                after_obj=invoice,
                request_id=ctx.request_id,
                ip_address=ctx.ip_address,
            )

    outcome = persist(db, prior=prior, tentative=tentative, write=write, label="payment")
    if isinstance(outcome, Err):
        raise WriteFailedError(outcome.reason)
    db.refresh(payment)
    return payment


@router.patch("/{invoice_id}/discount", response_model=InvoiceOut)
def update_discount(
    invoice_id: int,
    payload: DiscountUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    invoice = _lock_invoice(db, ctx.clinic_id, invoice_id)
    prior = invoice_from_row(invoice)
    if prior.is_void:
        raise ValidationError("Invoice is void.")
    ok, reason = validate_invoice_amounts(prior.items, payload.discount_amount, prior.tax_amount)
    if not ok:
        raise ValidationError(reason)

    tentative = apply_discount(prior, payload.discount_amount)
    before_data = snapshot_model(invoice)

    def write(session: Session, snapshot: InvoiceSnapshot) -> None:
        write_invoice_snapshot(invoice, snapshot)
        invoice.updated_by = ctx.actor
        log_event(
            session,
            clinic_id=ctx.clinic_id,
            actor=ctx.actor,
            action="invoice.discount_updated",
            entity_type="invoice",
            entity_id=invoice.id,
            before_data=before_data,
            after_obj=invoice,
            request_id=ctx.request_id,
            ip_address=ctx.ip_address,
        )

    outcome = persist(db, prior=prior, tentative=tentative, write=write, label="discount")
    if isinstance(outcome, Err):
        raise WriteFailedError(outcome.reason)
    db.refresh(invoice)
    return invoice


@router.post("/{invoice_id}/void", response_model=InvoiceOut)
def void_invoice(
    invoice_id: int,
    payload: InvoiceVoid,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    clock: Clock = Depends(get_clock),
):
    invoice = _lock_invoice(db, ctx.clinic_id, invoice_id)
    if invoice.is_void:
        raise TransitionError("Invoice is already void.")
    before_data = snapshot_model(invoice)
    invoice.is_void = True
    invoice.voided_at = clock.now()
    invoice.voided_reason = payload.reason
    invoice.updated_by = ctx.actor
    log_event(
        db,
        clinic_id=ctx.clinic_id,
        actor=ctx.actor,
        action="invoice.voided",
        entity_type="invoice",
        entity_id=invoice.id,
        before_data=before_data,
        after_obj=invoice,
        request_id=ctx.request_id,
        ip_address=ctx.ip_address,
    )
    db.commit()
    db.refresh(invoice)
    return invoice


@router.get("/{invoice_id}/statement", response_model=StatementOut)
def get_statement(
    invoice_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    invoice = _get_invoice(db, ctx.clinic_id, invoice_id)
    lines = build_statement(
        invoice_from_row(invoice),
        [payment_from_row(payment) for payment in invoice.payments],
    )
    return StatementOut(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        balance=to_money(invoice.balance),
        lines=[StatementLineOut.model_validate(line) for line in lines],
    )
