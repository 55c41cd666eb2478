from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Iterable

from dental_clinic.models.invoice import InvoiceStatus
from dental_clinic.services.ledger import ZERO, derive_status
from dental_clinic.services.records import InvoiceSnapshot, to_money

AGING_BUCKETS: tuple[tuple[str, int, int | None], ...] = (
    ("current", 0, 0),
    ("1-30", 1, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("90+", 91, None),
)


def is_past_due(invoice: InvoiceSnapshot, today: date) -> bool:
    return invoice.due_date is not None and invoice.due_date < today and invoice.balance > 0


def refresh_overdue(invoice: InvoiceSnapshot, today: date) -> InvoiceSnapshot:
    if invoice.is_void or invoice.status == InvoiceStatus.draft:
        return invoice
    if is_past_due(invoice, today):
        if invoice.status == InvoiceStatus.overdue:
            return invoice
        return replace(invoice, status=InvoiceStatus.overdue)
    if invoice.status == InvoiceStatus.overdue:
        return replace(invoice, status=derive_status(invoice.balance, invoice.amount_paid))
    return invoice


def days_past_due(invoice: InvoiceSnapshot, today: date) -> int:
    reference = invoice.due_date or invoice.invoice_date
    if reference is None:
        return 0
    return max(0, (today - reference).days)


def bucket_for(days: int) -> str:
    for label, low, high in AGING_BUCKETS:
        if days >= low and (high is None or days <= high):
            return label
    return AGING_BUCKETS[-1][0]


@dataclass
class AgingBucket:
    range: str
    amount: Decimal = ZERO
    count: int = 0


@dataclass
class AgingReport:
    as_of: date
    total_outstanding: Decimal = ZERO
    buckets: list[AgingBucket] = field(
        default_factory=lambda: [AgingBucket(label) for label, _, _ in AGING_BUCKETS]
    )

    def bucket(self, label: str) -> AgingBucket:
        return next(item for item in self.buckets if item.range == label)


def outstanding_aging(invoices: Iterable[InvoiceSnapshot], today: date) -> AgingReport:
    report = AgingReport(as_of=today)
    for invoice in invoices:
        if invoice.is_void or invoice.balance <= 0:
            continue
        bucket = report.bucket(bucket_for(days_past_due(invoice, today)))
        bucket.amount = to_money(bucket.amount + invoice.balance)
        bucket.count += 1
        report.total_outstanding = to_money(report.total_outstanding + invoice.balance)
    return report
