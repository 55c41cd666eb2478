from decimal import Decimal

from sqlalchemy import select

from dental_clinic.models.invoice import Invoice, InvoiceStatus
from dental_clinic.scripts import ledger_check


def seed_invoice(client, headers, payments=()):
    payload = {
        "patient_id": "pat-1",
        "items": [{"description": "Crown", "quantity": 1, "unit_price": "400.00"}],
    }
    invoice = client.post("/invoices", json=payload, headers=headers).json()
    for amount in payments:
        res = client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"amount": amount, "payment_method": "card"},
            headers=headers,
        )
        assert res.status_code == 201, res.text
    return invoice["id"]


def test_consistent_ledger_has_no_drift(api_client, clinic_headers, db_session):
    seed_invoice(api_client, clinic_headers, payments=["100.00", "50.00"])
    checked, drifted = ledger_check.check_invoices(db_session, apply=False)
    assert checked == 1
    assert drifted == []


def test_discount_settled_invoice_is_not_drift(api_client, clinic_headers, db_session):
    invoice_id = seed_invoice(api_client, clinic_headers)
    res = api_client.patch(
        f"/invoices/{invoice_id}/discount", json={"discount_amount": "400.00"}, headers=clinic_headers
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "paid"

    checked, drifted = ledger_check.check_invoices(db_session, apply=True)
    db_session.commit()
    assert checked == 1
    assert drifted == []
    row = db_session.get(Invoice, invoice_id)
    db_session.refresh(row)
    assert row.status == InvoiceStatus.paid
    assert row.balance == Decimal("0.00")


def test_drift_is_reported_and_repaired(api_client, clinic_headers, db_session):
    invoice_id = seed_invoice(api_client, clinic_headers, payments=["100.00"])
    row = db_session.get(Invoice, invoice_id)
    row.amount_paid = Decimal("0")
    row.balance = Decimal("400")
    row.status = InvoiceStatus.unpaid
    db_session.commit()

    checked, drifted = ledger_check.check_invoices(db_session, apply=False)
    assert checked == 1
    assert set(drifted[0].fields) == {"amount_paid", "balance", "status"}
    assert drifted[0].fields["status"] == ("unpaid", "partial")

    ledger_check.check_invoices(db_session, apply=True)
    db_session.commit()
    db_session.refresh(row)
    assert row.amount_paid == Decimal("100.00")
    assert row.balance == Decimal("300.00")
    assert row.status == InvoiceStatus.partial


def test_cli_dry_run_reports_without_writing(api_client, clinic_headers, db_session, capsys):
    invoice_id = seed_invoice(api_client, clinic_headers, payments=["400.00"])
    row = db_session.get(Invoice, invoice_id)
    row.status = InvoiceStatus.partial
    db_session.commit()

    assert ledger_check.main(["--dry-run"]) == 1
    out = capsys.readouterr().out
    assert "checked=1 drifted=1" in out
    assert "status partial -> paid" in out
    db_session.expire_all()
    assert db_session.scalar(select(Invoice.status).where(Invoice.id == invoice_id)) == InvoiceStatus.partial

    assert ledger_check.main(["--apply"]) == 0
    db_session.expire_all()
    assert db_session.scalar(select(Invoice.status).where(Invoice.id == invoice_id)) == InvoiceStatus.paid
