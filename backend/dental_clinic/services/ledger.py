"""Invoice balance and status reconciliation.

Every operation takes the current ``InvoiceSnapshot`` plus one event and
returns a new snapshot; payment history is never re-read. The snapshot always
satisfies::

    total_amount = subtotal - discount_amount + tax_amount
    balance      = max(0, total_amount - amount_paid)

and ``status`` is a function of ``(balance, amount_paid)`` except for the
``draft`` and ``overdue`` states, which are set by other collaborators.

Overpayment is accepted: ``amount_paid`` keeps the full amount collected while
``balance`` clamps at zero. Callers that want to refuse it use
``validate_payment(..., allow_overpayment=False)``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable

from dental_clinic.models.invoice import InvoiceStatus
from dental_clinic.services.records import (
    InvoiceSnapshot,
    LineItem,
    PaymentRecord,
    to_money,
)

ZERO = Decimal("0.00")


def derive_status(balance: Decimal, amount_paid: Decimal) -> InvoiceStatus:
    if balance <= 0:
        return InvoiceStatus.paid
    if amount_paid > 0:
        return InvoiceStatus.partial
    return InvoiceStatus.unpaid


def _balance(total_amount: Decimal, amount_paid: Decimal) -> Decimal:
    return max(ZERO, to_money(total_amount - amount_paid))


def kept_items(items: Iterable[LineItem]) -> tuple[LineItem, ...]:
    return tuple(item for item in items if (item.description or "").strip())


def create_invoice(
    items: Iterable[LineItem],
    discount_amount: Decimal | int = 0,
    tax_amount: Decimal | int = 0,
    *,
    invoice_id: int | None = None,
    patient_id: str | None = None,
    invoice_date: date | None = None,
    due_date: date | None = None,
) -> InvoiceSnapshot:
    lines = kept_items(items)
    subtotal = to_money(sum((item.line_total for item in lines), ZERO))
    discount = max(ZERO, to_money(discount_amount))
    tax = to_money(tax_amount)
    total = to_money(subtotal - discount + tax)
    return InvoiceSnapshot(
        id=invoice_id,
        patient_id=patient_id,
        invoice_date=invoice_date,
        due_date=due_date,
        items=lines,
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total_amount=total,
        amount_paid=ZERO,
        balance=max(ZERO, total),
        status=InvoiceStatus.unpaid,
    )


def apply_payment(invoice: InvoiceSnapshot, payment_amount: Decimal | int) -> InvoiceSnapshot:
    amount_paid = to_money(invoice.amount_paid + to_money(payment_amount))
    balance = _balance(invoice.total_amount, amount_paid)
    status = InvoiceStatus.paid if balance <= 0 else InvoiceStatus.partial
    return replace(invoice, amount_paid=amount_paid, balance=balance, status=status)


def apply_discount(invoice: InvoiceSnapshot, discount_amount: Decimal | int) -> InvoiceSnapshot:
    discount = max(ZERO, to_money(discount_amount))
    total = to_money(invoice.subtotal - discount + invoice.tax_amount)
    balance = _balance(total, invoice.amount_paid)
    return replace(
        invoice,
        discount_amount=discount,
        total_amount=total,
        balance=balance,
        status=derive_status(balance, invoice.amount_paid),
    )


def replay_payments(invoice: InvoiceSnapshot, amounts: Iterable[Decimal]) -> InvoiceSnapshot:
    """Rebuild paid/balance/status from a zero-paid base and a payment history."""
    balance = max(ZERO, invoice.total_amount)
    base = replace(
        invoice,
        amount_paid=ZERO,
        balance=balance,
        status=derive_status(balance, ZERO),
    )
    for amount in amounts:
        base = apply_payment(base, amount)
    if base.amount_paid == 0 and invoice.status in (InvoiceStatus.draft, InvoiceStatus.overdue):
        base = replace(base, status=invoice.status)
    elif base.amount_paid == 0 and base.balance == 0 and invoice.status == InvoiceStatus.unpaid:
        # zero-total invoices are issued unpaid
        base = replace(base, status=invoice.status)
    return base


def validate_payment(
    invoice: InvoiceSnapshot,
    amount: Decimal | int,
    *,
    allow_overpayment: bool = True,
) -> tuple[bool, str | None]:
    if invoice.is_void:
        return False, "Invoice is void."
    if invoice.status == InvoiceStatus.draft:
        return False, "Issue the invoice before recording payments."
    if to_money(amount) <= 0:
        return False, "Payment amount must be greater than 0."
    if not allow_overpayment and to_money(amount) > invoice.balance:
        return False, "Payment exceeds the outstanding balance."
    return True, None


def validate_invoice_amounts(
    items: Iterable[LineItem],
    discount_amount: Decimal | int,
    tax_amount: Decimal | int,
) -> tuple[bool, str | None]:
    lines = kept_items(items)
    if not lines:
        return False, "At least one item with a description is required."
    if to_money(discount_amount) < 0 or to_money(tax_amount) < 0:
        return False, "Discount and tax cannot be negative."
    subtotal = sum((item.line_total for item in lines), ZERO)
    if to_money(discount_amount) > subtotal + to_money(tax_amount):
        return False, "Discount cannot exceed the invoice total."
    return True, None


def can_delete(invoice: InvoiceSnapshot) -> tuple[bool, str | None]:
    if invoice.is_void:
        return False, "Void invoices are kept for the record."
    if invoice.amount_paid > 0 or invoice.status not in (InvoiceStatus.unpaid, InvoiceStatus.draft):
        return False, "Only unpaid invoices can be deleted."
    return True, None


@dataclass(frozen=True)
class StatementLine:
    entry_date: date | None
    kind: str
    description: str
    amount: Decimal
    running_balance: Decimal


def build_statement(
    invoice: InvoiceSnapshot, payments: Iterable[PaymentRecord]
) -> list[StatementLine]:
    lines: list[StatementLine] = []
    running = ZERO

    def add(entry_date: date | None, kind: str, description: str, amount: Decimal) -> None:
        nonlocal running
        running = to_money(running + amount)
        lines.append(StatementLine(entry_date, kind, description, amount, running))

    for item in invoice.items:
        label = item.description
        if item.tooth_number:
            label = f"{label} (tooth {item.tooth_number})"
        add(invoice.invoice_date, "charge", f"{label} x{item.quantity}", item.line_total)
    if invoice.discount_amount:
        add(invoice.invoice_date, "discount", "Discount", -invoice.discount_amount)
    if invoice.tax_amount:
        add(invoice.invoice_date, "tax", "Tax", invoice.tax_amount)

    ordered = sorted(payments, key=lambda p: (p.payment_date, p.id or 0))
    for payment in ordered:
        description = f"Payment ({payment.payment_method.value})"
        if payment.reference_number:
            description = f"{description} ref {payment.reference_number}"
        add(payment.payment_date, "payment", description, -to_money(payment.amount))
    return lines
