"""Integration tests for revolving-account endpoints"""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


def post(client: TestClient, transaction_type: str, amount, day: str, description="Posting", **extra):
    return client.post(
        "/credit-account/transaction",
        json={"transactionType": transaction_type, "amount": amount, "description": description, "date": day, **extra},
    )


@pytest.fixture
def charged(client: TestClient):
    """$100 on 01-05, $50 on 01-10, $200 on 01-20 on the default card"""
    return [
        post(client, "charge", amount, day, description).json()
        for amount, day, description in [
            (100, "2025-01-05", "Pipe fittings"),
            (50, "2025-01-10", "Fuel"),
            (200, "2025-01-20", "Gravel"),
        ]
    ]


def test_post_charge(client: TestClient):
    response = post(client, "charge", 125.40, "2025-01-05", "Septic tank lid", vendor="Home Depot")

    assert response.status_code == 201
    data = response.json()
    assert data["account"] == "Chase Credit Card"
    assert data["transaction"]["transactionType"] == "charge"
    assert data["transaction"]["date"] == "2025-01-05"
    assert data["transaction"]["balanceAfter"] == 125.4
    assert data["currentBalance"] == 125.4
    assert data["allocation"] is None


def test_payment_allocation_fifo(client: TestClient, charged):
    response = post(client, "payment", 120, "2025-02-01", "January payment", paymentMethod="Chase Bank")

    assert response.status_code == 201
    data = response.json()
    allocation = data["allocation"]
    assert [(a["chargeId"], a["amountApplied"], a["newStatus"]) for a in allocation["allocations"]] == [
        (charged[0]["transaction"]["chargeId"], 100.0, "paid"),
        (charged[1]["transaction"]["chargeId"], 20.0, "partial"),
    ]
    assert allocation["totalApplied"] == 120.0
    assert allocation["leftover"] == 0.0
    assert allocation["newBalance"] == 230.0
    assert data["currentBalance"] == 230.0
    assert data["transaction"]["paymentMethod"] == "Chase Bank"


def test_overpayment_returns_400(client: TestClient, charged):
    response = post(client, "payment", 400, "2025-02-01")

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["leftover"] == 50.0
    assert detail["openBalance"] == 350.0


def test_backdated_posting_returns_400(client: TestClient, charged):
    assert post(client, "charge", 10, "2025-01-15").status_code == 400


def test_invalid_transaction_type_returns_422(client: TestClient):
    assert post(client, "refund", 10, "2025-01-15").status_code == 422


def test_separate_account(client: TestClient, charged):
    response = post(client, "charge", 40, "2025-01-06", "Tools", account="AMEX")

    assert response.status_code == 201
    assert response.json()["account"] == "AMEX"
    assert response.json()["currentBalance"] == 40.0


def test_balance_statement(client: TestClient, charged):
    post(client, "interest", 3.75, "2025-01-31", "Interest")
    post(client, "payment", 120, "2025-02-01")

    response = client.get("/credit-account/balance")

    assert response.status_code == 200
    data = response.json()
    assert data["currentBalance"] == 233.75
    assert data["statistics"] == {
        "totalCharges": 350.0,
        "totalInterest": 3.75,
        "totalPayments": 120.0,
        "totalReversals": 0.0,
        "openCharges": 3,
        "pendingAmount": 233.75,
    }
    assert data["transactions"][0]["transactionType"] == "payment"
    assert data["ledgerConsistent"] is True


def test_balance_unknown_account_returns_404(client: TestClient):
    assert client.get("/credit-account/balance", params={"account": "Nope"}).status_code == 404


def test_reverse_payment(client: TestClient, charged):
    payment = post(client, "payment", 120, "2025-02-01").json()

    response = client.delete(f"/credit-account/payment/{payment['transaction']['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["reversal"]["transactionType"] == "reversal"
    assert data["reversal"]["amount"] == 120.0
    assert data["currentBalance"] == 350.0

    balance = client.get("/credit-account/balance").json()
    assert balance["ledgerConsistent"] is True
    assert balance["statistics"]["openCharges"] == 3
    reversed_payment = next(t for t in balance["transactions"] if t["id"] == payment["transaction"]["id"])
    assert reversed_payment["reversedById"] == data["reversal"]["id"]

    again = client.delete(f"/credit-account/payment/{payment['transaction']['id']}")
    assert again.status_code == 400


def test_reverse_unknown_payment_returns_404(client: TestClient):
    assert client.delete("/credit-account/payment/999").status_code == 404
