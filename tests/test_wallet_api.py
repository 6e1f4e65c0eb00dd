import pytest

from eisc.storage.memory import DEMO_USER_ID

pytestmark = pytest.mark.asyncio


async def test_wallet_requires_session(client):
    r = await client.get("/v1/wallet/balance")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


async def test_demo_balance(client, login_as):
    login_as(DEMO_USER_ID, "Carlos Méndez")
    r = await client.get("/v1/wallet/balance")
    assert r.status_code == 200
    balance = r.json()["balance"]
    assert balance["available"] == -1
    assert balance["in_escrow"] == 8
    assert balance["can_spend"] == 9
    assert balance["debt_amount"] == 1
    assert balance["credit_line_utilization"] == 10.0


async def test_purchase_then_insufficient_funds(client, login_as):
    login_as("buyer-1")
    r = await client.post(
        "/v1/wallet/purchases",
        json={"amount": 8, "description": "Logo", "counterparty": "Ana"},
    )
    assert r.status_code == 200
    tx_id = r.json()["transaction_id"]
    assert r.json()["balance"]["available"] == -8

    r = await client.post(
        "/v1/wallet/purchases",
        json={"amount": 5, "description": "Legal", "counterparty": "Roberto"},
    )
    assert r.status_code == 402
    body = r.json()
    assert body["error"]["code"] == "INSUFFICIENT_FUNDS"
    assert "credit line" in body["error"]["message"]

    r = await client.post(f"/v1/wallet/escrow/{tx_id}/release")
    assert r.status_code == 200
    balance = r.json()["balance"]
    assert (balance["available"], balance["in_escrow"], balance["total_spent"]) == (-8, 0, 8)


async def test_purchase_validates_amount(client, login_as):
    login_as("buyer-1")
    r = await client.post(
        "/v1/wallet/purchases",
        json={"amount": -1, "description": "x", "counterparty": "y"},
    )
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_release_unknown_transaction(client, login_as):
    login_as("buyer-1")
    r = await client.post("/v1/wallet/escrow/tx-nope/release")
    assert r.status_code == 404


async def test_transactions_filters_and_pagination(client, login_as):
    login_as(DEMO_USER_ID)
    r = await client.get("/v1/wallet/transactions", params={"type": "debit"})
    body = r.json()
    assert body["total"] == 2
    assert [t["id"] for t in body["items"]] == ["tx-006", "tx-004"]

    r = await client.get("/v1/wallet/transactions", params={"status": "escrow"})
    assert [t["id"] for t in r.json()["items"]] == ["tx-004"]

    r = await client.get("/v1/wallet/transactions", params={"limit": 2, "offset": 1})
    body = r.json()
    assert body["total"] == 6
    assert [t["id"] for t in body["items"]] == ["tx-005", "tx-004"]


async def test_payment_awards_first_sale(client, login_as):
    login_as("seller-1")
    r = await client.post(
        "/v1/wallet/payments",
        json={"amount": 5, "description": "Consulting", "payer": "Roberto", "service_id": "svc-002"},
    )
    assert r.status_code == 200
    assert r.json()["balance"]["total_earned"] == 7

    r = await client.get("/v1/wallet/milestones")
    assert r.json()["milestones"]["first_sale"]["completed"] is True


async def test_complete_milestone_twice(client, login_as):
    login_as("new-2", is_new_user=True)
    r = await client.post("/v1/wallet/milestones/portfolio/complete")
    assert r.json()["transaction_id"] is not None
    r = await client.post("/v1/wallet/milestones/portfolio/complete")
    assert r.json()["transaction_id"] is None

    r = await client.get("/v1/wallet/balance")
    # registration 1 + portfolio 2
    assert r.json()["balance"]["available"] == 3

    r = await client.post("/v1/wallet/milestones/unknown/complete")
    assert r.status_code == 404


async def test_bonus_check(client, login_as):
    login_as("u-bonus")
    r = await client.post("/v1/wallet/bonus/check")
    assert r.json()["awarded"] is True
    r = await client.post("/v1/wallet/bonus/check", json={"now": "2026-03-15T00:00:00Z"})
    assert r.json()["awarded"] is False
    r = await client.post("/v1/wallet/bonus/check", json={"now": "2026-04-01T00:00:00Z"})
    assert r.json()["awarded"] is True


async def test_sync_with_nothing_pending(client, login_as):
    login_as("u-sync")
    r = await client.post("/v1/wallet/sync")
    assert r.json() == {"pending": 0}
