from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from dental_clinic.services.ledger import ZERO
from dental_clinic.services.records import InvoiceSnapshot, PaymentRecord, to_money


@dataclass
class PatientBalance:
    patient_id: str
    balance: Decimal = ZERO
    invoice_count: int = 0
    last_visit: date | None = None


@dataclass
class MethodTotal:
    method: str
    amount: Decimal = ZERO
    count: int = 0


def patient_balance_summaries(invoices: Iterable[InvoiceSnapshot]) -> dict[str, PatientBalance]:
    summary: dict[str, PatientBalance] = {}
    for invoice in invoices:
        if not invoice.patient_id or invoice.is_void:
            continue
        current = summary.setdefault(invoice.patient_id, PatientBalance(invoice.patient_id))
        current.balance = to_money(current.balance + invoice.balance)
        current.invoice_count += 1
        if invoice.invoice_date and (
            current.last_visit is None or invoice.invoice_date > current.last_visit
        ):
            current.last_visit = invoice.invoice_date
    return summary


def payment_breakdown(payments: Iterable[PaymentRecord]) -> tuple[list[MethodTotal], Decimal]:
    totals: dict[str, MethodTotal] = defaultdict(lambda: MethodTotal(method=""))
    grand_total = ZERO
    for payment in payments:
        key = payment.payment_method.value
        entry = totals[key]
        entry.method = key
        entry.amount = to_money(entry.amount + payment.amount)
        entry.count += 1
        grand_total = to_money(grand_total + payment.amount)
    ordered = sorted(totals.values(), key=lambda item: (-item.amount, item.method))
    return ordered, grand_total
