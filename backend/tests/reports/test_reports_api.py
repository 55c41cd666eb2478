from decimal import Decimal

D = Decimal


def create_invoice(client, headers, amount, patient_id="pat-1", **extra):
    payload = {
        "patient_id": patient_id,
        "items": [{"description": "Treatment", "quantity": 1, "unit_price": amount}],
        **extra,
    }
    res = client.post("/invoices", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_outstanding_report(api_client, clinic_headers):
    create_invoice(api_client, clinic_headers, "120.00")
    create_invoice(
        api_client, clinic_headers, "80.00", invoice_date="2026-01-01", due_date="2026-01-15"
    )
    res = api_client.get("/reports/outstanding", headers=clinic_headers)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["as_of"] == "2026-03-10"
    assert D(body["total_outstanding"]) == D("200.00")
    buckets = {bucket["range"]: bucket for bucket in body["buckets"]}
    assert D(buckets["current"]["amount"]) == D("120.00")
    assert buckets["31-60"]["count"] == 1


def test_patient_balances_report(api_client, clinic_headers):
    first = create_invoice(api_client, clinic_headers, "100.00")
    create_invoice(api_client, clinic_headers, "40.00", patient_id="pat-2")
    api_client.post(
        f"/invoices/{first['id']}/payments",
        json={"amount": "100.00", "payment_method": "cash"},
        headers=clinic_headers,
    )
    res = api_client.get("/reports/patient-balances", headers=clinic_headers)
    assert res.status_code == 200
    rows = res.json()
    assert [row["patient_id"] for row in rows] == ["pat-2", "pat-1"]
    assert rows[1]["last_visit"] == "2026-03-10"

    owing = api_client.get(
        "/reports/patient-balances", params={"outstanding_only": True}, headers=clinic_headers
    ).json()
    assert [row["patient_id"] for row in owing] == ["pat-2"]


def test_revenue_report(api_client, clinic_headers):
    invoice = create_invoice(api_client, clinic_headers, "300.00")
    for amount, method in (("100.00", "card"), ("50.00", "cash"), ("30.00", "card")):
        api_client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"amount": amount, "payment_method": method},
            headers=clinic_headers,
        )
    res = api_client.get("/reports/revenue", headers=clinic_headers)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["range"] == {"start": "2026-02-09", "end": "2026-03-10"}
    assert D(body["total_revenue"]) == D("180.00")
    assert body["payment_count"] == 3
    assert D(body["average_transaction"]) == D("60.00")
    assert [row["method"] for row in body["payment_breakdown"]] == ["card", "cash"]


def test_revenue_report_rejects_inverted_range(api_client, clinic_headers):
    res = api_client.get(
        "/reports/revenue", params={"start": "2026-03-10", "end": "2026-03-01"}, headers=clinic_headers
    )
    assert res.status_code == 400
