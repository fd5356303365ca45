"""
E2E tests for remittance flows against the mock partner server.

These tests require the mock server to be running on localhost:8001:
    uvicorn mock.partner_server.main:app --port 8001

Flows:
- happy path: UG -> KE mobile money delivered after two partner polls
- sanctions hit: recipient named "blocked" is held for review
- declined payment: payment proof reference "declined" fails the transfer
- partner rejection: recipient named "reject" fails at dispatch
- large amount: sends over the tax threshold are held for review
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from remit_gateway.api.dependencies import build_orchestrator
from remit_gateway.api.main import create_app
from remit_gateway.config import Settings


@pytest.fixture
def client(tmp_path) -> TestClient:
    """Client wired to the real HTTP collaborators and a throwaway SQLite store"""
    config = Settings(
        database_url=f"sqlite:///{tmp_path / 'e2e.db'}",
        rate_api_base="http://localhost:8001",
        screening_api_base="http://localhost:8001",
        payment_api_base="http://localhost:8001",
        partner_api_base="http://localhost:8001",
        rate_refresh_enabled=False,
    )
    return TestClient(create_app(build_orchestrator(config)))


def send(client: TestClient, payload: dict) -> dict:
    response = client.post("/v1/transfers", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.integration
def test_ug_ke_delivered(client: TestClient, ug_ke_payload: dict):
    """
    Standard mobile money transfer
    Expected: awaiting_payment -> sent_to_partner -> completed
    """
    created = send(client, ug_ke_payload)
    assert created["status"] == "awaiting_payment"
    assert Decimal(created["fee"]) == Decimal("7500")
    assert Decimal(created["total_cost"]) == Decimal("107500")

    paid = client.post(f"/v1/transfers/{created['transfer_id']}/payment", json={"proof": {"reference": "MM-001"}})
    assert paid.status_code == 200
    assert paid.json()["status"] == "sent_to_partner"
    assert paid.json()["partner_reference"]

    first = client.get(f"/v1/transfers/{created['transfer_id']}").json()
    assert first["status"] == "sent_to_partner"

    second = client.get(f"/v1/transfers/{created['transfer_id']}").json()
    assert second["status"] == "completed"
    assert second["actual_delivery"] is not None


@pytest.mark.integration
def test_sanctioned_recipient_held(client: TestClient, ug_ke_payload: dict):
    """
    Recipient on the sanctions list
    Expected: held in compliance_check, payment refused
    """
    ug_ke_payload["recipient"]["name"] = "Blocked Person"

    created = send(client, ug_ke_payload)

    assert created["status"] == "compliance_check"
    sanctions = next(c for c in created["compliance_checks"] if c["check_type"] == "sanctions")
    assert sanctions["status"] == "failed"
    assert "sanctions_match" in sanctions["flags"]

    response = client.post(f"/v1/transfers/{created['transfer_id']}/payment", json={})
    assert response.status_code == 409


@pytest.mark.integration
def test_declined_payment_fails(client: TestClient, ug_ke_payload: dict):
    created = send(client, ug_ke_payload)

    response = client.post(
        f"/v1/transfers/{created['transfer_id']}/payment",
        json={"proof": {"reference": "declined"}},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["partner_id"] is None


@pytest.mark.integration
def test_partner_rejects_recipient(client: TestClient, ug_ke_payload: dict):
    ug_ke_payload["recipient"]["name"] = "Reject Me"

    created = send(client, ug_ke_payload)
    response = client.post(f"/v1/transfers/{created['transfer_id']}/payment", json={"proof": {"reference": "MM-002"}})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "failed"
    assert "rejected" in data["failure_reason"]


@pytest.mark.integration
def test_large_amount_held_for_tax_review(client: TestClient, ug_ke_payload: dict):
    """
    Send above the tax reporting threshold
    Expected: tax_reporting check added, transfer held
    """
    ug_ke_payload["send_amount"] = "2000000"

    created = send(client, ug_ke_payload)

    assert created["status"] == "compliance_check"
    check_types = [c["check_type"] for c in created["compliance_checks"]]
    assert "tax_reporting" in check_types
