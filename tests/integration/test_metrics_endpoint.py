"""Integration tests for metrics and health endpoints."""

from __future__ import annotations

from tests.integration.utils import auth_headers


def test_metrics_endpoint_available(client):
    client.get("/healthz")
    response = client.get("/metrics")
    assert response.status_code == 200
    body = response.content.decode()
    assert "careledger_http_requests_total" in body
    assert "careledger_extractions_total" in body


def test_triage_decisions_are_counted(client):
    client.post(
        "/transactions/sync",
        json={
            "transactions": [
                {
                    "id": "m-1",
                    "account_id": "checking",
                    "amount_cents": -2499,
                    "posted_date": "2024-03-05",
                    "raw_description": "CVS/PHARMACY #1234",
                }
            ]
        },
        headers=auth_headers(),
    )
    row_id = client.get("/transactions", headers=auth_headers()).json()[0]["transaction"]["id"]
    client.post(f"/transactions/{row_id}/skip", headers=auth_headers())

    body = client.get("/metrics").content.decode()
    assert 'careledger_triage_decisions_total{decision="skip",result="applied"}' in body


def test_healthz_reports_version(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
