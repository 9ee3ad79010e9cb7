"""API tests for /api/v1/recon."""

from __future__ import annotations

from decimal import Decimal

BASE = "/api/v1/recon"

STATEMENT = (
    "payment_id,amount,fee,settled_amount,settled_on,status\n"
    "pay_001,1000.00,44.84,955.16,2024-01-16 16:00:00,processed\n"
    "pay_002,500.00,30.00,470.00,2024-01-16 16:00:00,processed\n"
    "pay_bad,10.00,1.00,9.00,2024-01-16 16:00:00,failed\n"
    "pay_ghost,200.00,8.97,191.03,2024-01-16 16:00:00,processed\n"
).encode()


def _capture(client, txn_id, amount):
    client.post(
        "/api/v1/payments/capture",
        json={
            "transactionId": txn_id,
            "tenantId": "merchant-1",
            "amount": amount,
            "gateway": "razorpay",
            "paidAt": "2024-01-15T06:00:00Z",
        },
    )


def _upload(client, content=STATEMENT, filename="razorpay.csv"):
    return client.post(
        f"{BASE}/statements/upload",
        params={"gateway": "razorpay"},
        files={"file": (filename, content, "text/csv")},
    )


def test_upload_skips_failed_lines(client):
    response = _upload(client)

    assert response.status_code == 200
    data = response.json()
    assert data["linesProcessed"] == 4
    assert data["linesSaved"] == 3
    assert data["linesSkipped"] == 1
    assert data["status"] == "partial"


def test_upload_empty_file_is_400(client):
    assert _upload(client, content=b"").status_code == 400


def test_upload_unknown_format_is_400(client):
    response = client.post(
        f"{BASE}/statements/upload",
        params={"gateway": "razorpay", "format": "xml"},
        files={"file": ("s.xml", b"<a/>", "application/xml")},
    )
    assert response.status_code == 400


def test_run_and_resolve(client):
    _capture(client, "pay_001", 1000)
    _capture(client, "pay_002", 500)
    _capture(client, "pay_003", 250)
    _upload(client)

    run = client.post(
        f"{BASE}/run",
        json={"dateFrom": "2024-01-15", "dateTo": "2024-01-15", "referenceDate": "2024-01-30"},
    )
    assert run.status_code == 200
    run_data = run.json()
    assert run_data["status"] == "completed"
    assert run_data["totalPayments"] == 3
    assert run_data["matchedCount"] == 2

    detail = client.get(f"{BASE}/runs/{run_data['id']}").json()
    types = sorted(e["type"] for e in detail["exceptions"])
    # pay_002: statement fee 30.00 vs our commission 22.42
    assert types == ["fee_mismatch", "missing_settlement", "unexpected_settlement"]

    listed = client.get(f"{BASE}/exceptions", params={"type": "missing_settlement"}).json()
    assert listed["total"] == 1
    exception_id = listed["items"][0]["id"]
    assert Decimal(listed["items"][0]["differenceAmount"]) == Decimal("250")

    resolved = client.post(
        f"{BASE}/exceptions/{exception_id}/resolve",
        json={"status": "resolved", "note": "gateway paid late"},
    )
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["resolvedAt"] is not None

    reopened = client.post(f"{BASE}/exceptions/{exception_id}/resolve", json={"status": "pending"})
    assert reopened.status_code == 400

    overview = client.get(f"{BASE}/overview").json()
    assert overview["totalRuns"] == 1
    assert overview["exceptionsByStatus"]["resolved"] == 1
    assert overview["unsettledPayments"] == 3


def test_run_invalid_range_is_400(client):
    response = client.post(f"{BASE}/run", json={"dateFrom": "2024-01-16", "dateTo": "2024-01-15"})
    assert response.status_code == 400


def test_unknown_run_is_404(client):
    assert client.get(f"{BASE}/runs/00000000-0000-0000-0000-000000000000").status_code == 404
