"""Typed records handed to the engines, and the row translations that build them.

Rows coming out of the store are mapped exactly once, here, so the engines
never see ORM objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal, ROUND_HALF_UP

from dental_clinic.models.appointment import Appointment, AppointmentStatus, AppointmentType
from dental_clinic.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMethod

CENT = Decimal("0.01")
MINUTES_PER_DAY = 24 * 60


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AppointmentRecord:
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus = AppointmentStatus.scheduled
    id: int | None = None
    patient_id: str | None = None
    dentist_id: str | None = None
    appointment_type: AppointmentType = AppointmentType.checkup
    reason_for_visit: str | None = None
    notes: str | None = None

    @property
    def start_minute(self) -> int:
        return self.start_time.hour * 60 + self.start_time.minute

    @property
    def end_minute(self) -> int:
        minutes = self.end_time.hour * 60 + self.end_time.minute
        return minutes or MINUTES_PER_DAY


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    tooth_number: str | None = None

    @property
    def line_total(self) -> Decimal:
        return to_money(self.quantity * to_money(self.unit_price))


@dataclass(frozen=True)
class InvoiceSnapshot:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: InvoiceStatus
    items: tuple[LineItem, ...] = ()
    id: int | None = None
    patient_id: str | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    is_void: bool = False


@dataclass(frozen=True)
class PaymentRecord:
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.cash
    id: int | None = None
    invoice_id: int | None = None
    patient_id: str | None = None
    reference_number: str | None = None


def appointment_from_row(row: Appointment) -> AppointmentRecord:
    return AppointmentRecord(
        id=row.id,
        patient_id=row.patient_id,
        dentist_id=row.dentist_id,
        appointment_date=row.appointment_date,
        start_time=row.start_time,
        end_time=row.end_time,
        appointment_type=row.appointment_type,
        status=row.status,
        reason_for_visit=row.reason_for_visit,
        notes=row.notes,
    )


def invoice_from_row(row: Invoice) -> InvoiceSnapshot:
    items = tuple(
        LineItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=to_money(item.unit_price),
            tooth_number=item.tooth_number,
        )
        for item in row.items or []
    )
    return InvoiceSnapshot(
        id=row.id,
        patient_id=row.patient_id,
        invoice_date=row.invoice_date,
        due_date=row.due_date,
        subtotal=to_money(row.subtotal),
        discount_amount=to_money(row.discount_amount),
        tax_amount=to_money(row.tax_amount),
        total_amount=to_money(row.total_amount),
        amount_paid=to_money(row.amount_paid),
        balance=to_money(row.balance),
        status=row.status,
        items=items,
        is_void=bool(row.is_void),
    )


def payment_from_row(row: Payment) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        invoice_id=row.invoice_id,
        patient_id=row.patient_id,
        amount=to_money(row.amount),
        payment_date=row.payment_date,
        payment_method=row.payment_method,
        reference_number=row.reference_number,
    )


def write_invoice_snapshot(row: Invoice, snapshot: InvoiceSnapshot) -> None:
    """Copy the reconciled monetary fields and status back onto a row."""
    row.subtotal = snapshot.subtotal
    row.discount_amount = snapshot.discount_amount
    row.tax_amount = snapshot.tax_amount
    row.total_amount = snapshot.total_amount
    row.amount_paid = snapshot.amount_paid
    row.balance = snapshot.balance
    row.status = snapshot.status
