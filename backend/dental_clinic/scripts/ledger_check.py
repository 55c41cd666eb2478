"""Recompute invoice totals from line items and payment history and report drift."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, replace

from sqlalchemy import select

from dental_clinic.db.session import SessionLocal
from dental_clinic.models.invoice import Invoice, InvoiceStatus
from dental_clinic.services.ledger import create_invoice, replay_payments
from dental_clinic.services.records import (
    InvoiceSnapshot,
    invoice_from_row,
    payment_from_row,
    write_invoice_snapshot,
)

logger = logging.getLogger("dental_clinic.scripts")

CHECKED_FIELDS = ("subtotal", "total_amount", "amount_paid", "balance", "status")


@dataclass
class Drift:
    invoice_id: int
    invoice_number: str
    fields: dict[str, tuple[str, str]]


def expected_snapshot(invoice: Invoice) -> InvoiceSnapshot:
    stored = invoice_from_row(invoice)
    rebuilt = create_invoice(stored.items, stored.discount_amount, stored.tax_amount)
    base = replace(
        stored,
        subtotal=rebuilt.subtotal,
        discount_amount=rebuilt.discount_amount,
        total_amount=rebuilt.total_amount,
    )
    payments = sorted(
        (payment_from_row(p) for p in invoice.payments),
        key=lambda p: (p.payment_date, p.id or 0),
    )
    expected = replay_payments(base, [p.amount for p in payments])
    # overdue is set by the aging job and survives partial payment
    if stored.status == InvoiceStatus.overdue and expected.status != InvoiceStatus.paid:
        expected = replace(expected, status=InvoiceStatus.overdue)
    return expected


def find_drift(invoice: Invoice, expected: InvoiceSnapshot) -> Drift | None:
    stored = invoice_from_row(invoice)
    fields: dict[str, tuple[str, str]] = {}
    for name in CHECKED_FIELDS:
        have = getattr(stored, name)
        want = getattr(expected, name)
        if have != want:
            fields[name] = (str(getattr(have, "value", have)), str(getattr(want, "value", want)))
    if not fields:
        return None
    return Drift(invoice.id, invoice.invoice_number, fields)


def check_invoices(session, apply: bool, clinic_id: str | None = None) -> tuple[int, list[Drift]]:
    stmt = select(Invoice).where(Invoice.is_void.is_(False)).order_by(Invoice.id.asc())
    if clinic_id:
        stmt = stmt.where(Invoice.clinic_id == clinic_id)
    checked = 0
    drifted: list[Drift] = []
    for invoice in session.scalars(stmt):
        checked += 1
        expected = expected_snapshot(invoice)
        drift = find_drift(invoice, expected)
        if drift is None:
            continue
        logger.warning("Invoice %s drifted: %s", invoice.invoice_number, drift.fields)
        drifted.append(drift)
        if apply:
            write_invoice_snapshot(invoice, expected)
    return checked, drifted


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check invoice totals against items and payments.")
    parser.add_argument("--apply", action="store_true", help="Write corrected totals to the database.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drift without writing (default).",
    )
    parser.add_argument("--clinic-id", default=None, help="Only check one clinic.")
    args = parser.parse_args(argv)
    apply = args.apply and not args.dry_run

    session = SessionLocal()
    try:
        checked, drifted = check_invoices(session, apply, args.clinic_id)
        if apply:
            session.commit()
        print("Ledger check")
        print(f"Invoices: checked={checked} drifted={len(drifted)}")
        for drift in drifted:
            changes = ", ".join(f"{name} {old} -> {new}" for name, (old, new) in drift.fields.items())
            print(f"  {drift.invoice_number}: {changes}")
        if drifted and not apply:
            print("Dry run only. Use --apply to persist changes.")
        return 1 if drifted and not apply else 0
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    raise SystemExit(main())
