"""Tests for the health endpoint and the shared error body."""

from __future__ import annotations

import uuid


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "paysettle"}


def test_domain_errors_render_code_and_detail(client):
    """Service errors go through the PaySettleError handler, not FastAPI's default."""
    missing = uuid.uuid4()
    response = client.get(f"/api/v1/payments/{missing}")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "not_found"
    assert body["detail"] == "Payment not found"
    assert body["paymentId"] == str(missing)


def test_routers_are_mounted_under_api_v1(client):
    paths = client.get("/openapi.json").json()["paths"]
    for path in (
        "/api/v1/payments/capture",
        "/api/v1/rotation/route",
        "/api/v1/settlement/sweep",
        "/api/v1/ledger/journal",
        "/api/v1/recon/run",
    ):
        assert path in paths
