"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient


def as_user(account_id: str) -> dict:
    return {"X-Account-ID": account_id}


@pytest.fixture
def group_id(client: TestClient, accounts) -> str:
    response = client.post(
        "/v1/groups",
        json={
            "name": "Flatmates",
            "description": "Rent and groceries",
            "member_emails": ["Manoj@Example.com", "meera@example.com", "late@example.com"],
        },
        headers=as_user("u_payer"),
    )
    assert response.status_code == 201
    return response.json()["group"]["group_id"]


def post_dinner(client: TestClient, group_id: str, **overrides):
    body = {
        "description": "Dinner",
        "amount": 300,
        "date": "2024-05-04",
        "paid_by": "u_payer",
        "split_type": "equal",
        "split_members": ["u_payer", "u_m1", "u_m2"],
    }
    body.update(overrides)
    return client.post(f"/v1/groups/{group_id}/expenses", json=body, headers=as_user("u_payer"))


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "splitez_expenses_recorded_total" in response.text


def test_requires_account_header(client: TestClient):
    response = client.get("/v1/groups")
    assert response.status_code == 401


def test_account_upsert_normalizes_email(client: TestClient, service_headers):
    response = client.put(
        "/v1/accounts/u_x", json={"name": "Xavier", "email": " Xavier@Example.COM "}, headers=service_headers
    )

    assert response.status_code == 200
    assert response.json()["email"] == "xavier@example.com"


def test_create_group_and_details(client: TestClient, group_id: str):
    response = client.get(f"/v1/groups/{group_id}", headers=as_user("u_m1"))

    assert response.status_code == 200
    data = response.json()
    assert {m["account_id"] for m in data["members"]} == {"u_payer", "u_m1", "u_m2"}
    assert data["pending_emails"] == ["late@example.com"]
    assert data["can_delete"] is False

    listing = client.get("/v1/groups", headers=as_user("u_m2")).json()
    assert [g["group_id"] for g in listing["groups"]] == [group_id]


def test_non_member_cannot_view_group(client: TestClient, group_id: str):
    response = client.get(f"/v1/groups/{group_id}", headers=as_user("stranger"))
    assert response.status_code == 403


def test_expense_flow_and_balances(client: TestClient, group_id: str, gamification):
    """Create expense, check balances, debtor pays, balances update"""
    response = post_dinner(client, group_id)

    assert response.status_code == 201
    data = response.json()
    assert data["expense"]["split_info"] == "Split equally among 3 people"
    assert {s["debtor_id"]: s["amount"] for s in data["settlements"]} == {"u_m1": 100.0, "u_m2": 100.0}
    assert gamification.events[-1]["event"] == "EXPENSE_ADDED"
    assert gamification.events[-1]["account_id"] == "u_payer"
    assert gamification.events[-1]["points"] == 10

    payer = client.get("/v1/balances/me", headers=as_user("u_payer")).json()
    assert payer["total_owed_to_you"] == pytest.approx(200.0)
    assert payer["total_spent"] == pytest.approx(300.0)
    assert client.get("/v1/balances/me", headers=as_user("u_m1")).json()["total_owed"] == pytest.approx(100.0)

    m1_settlement = next(s for s in data["settlements"] if s["debtor_id"] == "u_m1")
    paid = client.post(f"/v1/settlements/{m1_settlement['settlement_id']}/pay", headers=as_user("u_m1"))
    assert paid.status_code == 200
    assert paid.json()["changed"] is True
    assert gamification.events[-1] == {
        "event": "SETTLEMENT_PAID",
        "settlement_id": m1_settlement["settlement_id"],
        "account_id": "u_m1",
        "points": 20,
    }

    again = client.post(f"/v1/settlements/{m1_settlement['settlement_id']}/pay", headers=as_user("u_m1"))
    assert again.status_code == 200
    assert again.json()["changed"] is False
    assert len(gamification.events) == 2

    assert client.get("/v1/balances/me", headers=as_user("u_m1")).json()["total_owed"] == 0.0
    assert client.get("/v1/balances/me", headers=as_user("u_m2")).json()["total_owed"] == pytest.approx(100.0)

    debts = client.get(f"/v1/groups/{group_id}/balances", headers=as_user("u_m2")).json()["debts"]
    assert [(d["debtor_name"], d["creditor_name"], d["amount"]) for d in debts] == [("Meera", "Priya", 100.0)]


def test_non_debtor_cannot_pay(client: TestClient, group_id: str):
    settlements = post_dinner(client, group_id).json()["settlements"]
    m2_settlement = next(s for s in settlements if s["debtor_id"] == "u_m2")

    response = client.post(f"/v1/settlements/{m2_settlement['settlement_id']}/pay", headers=as_user("u_m1"))
    assert response.status_code == 403


def test_custom_split_mismatch_returns_422(client: TestClient, group_id: str):
    response = post_dinner(
        client,
        group_id,
        amount=100,
        split_type="custom",
        split_members=["u_m1", "u_m2"],
        custom_shares={"u_m1": 50, "u_m2": 40},
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["reason"] == "split mismatch"
    assert detail["expected"] == 100.0
    assert detail["actual"] == 90.0

    listing = client.get(f"/v1/groups/{group_id}/expenses", headers=as_user("u_payer")).json()
    assert listing["expenses"] == []


def test_expense_breakdown_and_settle(client: TestClient, group_id: str, gamification):
    expense_id = post_dinner(client, group_id).json()["expense"]["expense_id"]

    breakdown = client.get(f"/v1/expenses/{expense_id}", headers=as_user("u_m1")).json()
    assert breakdown["payer_name"] == "Priya"
    assert breakdown["you_owe"] == pytest.approx(100.0)
    assert {line["debtor_name"]: line["status"] for line in breakdown["lines"]} == {
        "Manoj": "pending",
        "Meera": "pending",
    }

    own = client.post(f"/v1/expenses/{expense_id}/settle", headers=as_user("u_payer"))
    assert own.status_code == 403

    settled = client.post(f"/v1/expenses/{expense_id}/settle", headers=as_user("u_m1"))
    assert settled.status_code == 200
    assert settled.json()["newly_paid"] == 1

    after = client.get(f"/v1/expenses/{expense_id}", headers=as_user("u_payer")).json()
    assert after["owed_to_you"] == pytest.approx(100.0)
    assert {line["debtor_name"]: line["status"] for line in after["lines"]}["Manoj"] == "paid"


def test_payment_callback(client: TestClient, group_id: str, gamification, service_headers):
    settlement = post_dinner(client, group_id).json()["settlements"][0]

    tuple_view = client.get(f"/v1/settlements/{settlement['settlement_id']}", headers=as_user("u_payer")).json()
    assert tuple_view["creditor_id"] == "u_payer"
    assert tuple_view["amount"] == pytest.approx(100.0)

    response = client.post(
        "/v1/payments/confirmed", json={"settlement_id": settlement["settlement_id"]}, headers=service_headers
    )
    assert response.status_code == 200
    assert response.json()["settlement"]["status"] == "paid"
    assert gamification.events[-1]["account_id"] == settlement["debtor_id"]

    missing = client.post("/v1/payments/confirmed", json={"settlement_id": "nope"}, headers=service_headers)
    assert missing.status_code == 404


def test_payment_callback_requires_service_token(client: TestClient, group_id: str, gamification):
    settlement = post_dinner(client, group_id).json()["settlements"][0]
    body = {"settlement_id": settlement["settlement_id"]}

    assert client.post("/v1/payments/confirmed", json=body).status_code == 401
    assert client.post("/v1/payments/confirmed", json=body, headers=as_user("u_payer")).status_code == 401
    assert client.post("/v1/payments/confirmed", json=body, headers={"X-Service-Token": "guess"}).status_code == 403

    still = client.get(f"/v1/settlements/{settlement['settlement_id']}", headers=as_user("u_payer")).json()
    assert still["status"] == "pending"
    assert [e["event"] for e in gamification.events] == ["EXPENSE_ADDED"]


def test_account_sync_requires_service_token(client: TestClient, group_id: str):
    """An unauthenticated profile cannot claim a pending invite"""
    response = client.put("/v1/accounts/u_evil", json={"name": "Eve", "email": "late@example.com"})
    assert response.status_code == 401

    group = client.get(f"/v1/groups/{group_id}", headers=as_user("u_payer")).json()
    assert "u_evil" not in {m["account_id"] for m in group["members"]}
    assert group["pending_emails"] == ["late@example.com"]
    assert client.get(f"/v1/groups/{group_id}", headers=as_user("u_evil")).status_code == 403


def test_account_sync_rejects_email_of_another_account(client: TestClient, accounts, service_headers):
    taken = client.put(
        "/v1/accounts/u_evil", json={"name": "Eve", "email": "MANOJ@example.com"}, headers=service_headers
    )
    assert taken.status_code == 409

    own = client.put(
        "/v1/accounts/u_m1", json={"name": "Manoj K", "email": "manoj@example.com"}, headers=service_headers
    )
    assert own.status_code == 200
    assert own.json()["name"] == "Manoj K"


def test_non_finite_custom_share_returns_422(client: TestClient, group_id: str):
    body = (
        '{"description": "Dinner", "amount": 100, "date": "2024-05-04", "paid_by": "u_payer",'
        ' "split_type": "custom", "split_members": ["u_payer", "u_m1"],'
        ' "custom_shares": {"u_payer": 100, "u_m1": NaN}}'
    )

    response = client.post(
        f"/v1/groups/{group_id}/expenses",
        content=body,
        headers={**as_user("u_payer"), "Content-Type": "application/json"},
    )

    assert response.status_code == 422
    listing = client.get(f"/v1/groups/{group_id}/expenses", headers=as_user("u_payer")).json()
    assert listing["expenses"] == []


def test_my_settlements_signed_amounts(client: TestClient, group_id: str):
    post_dinner(client, group_id)

    mine = client.get("/v1/settlements", headers=as_user("u_m1")).json()["settlements"]
    theirs = client.get("/v1/settlements", headers=as_user("u_payer")).json()["settlements"]

    assert [s["signed_amount"] for s in mine] == [pytest.approx(100.0)]
    assert sorted(s["signed_amount"] for s in theirs) == [pytest.approx(-100.0), pytest.approx(-100.0)]


def test_my_settlements_legacy_rows(client: TestClient, group_id: str):
    """Owed-to-you amounts collapse into one negative row per expense"""
    expense_id = post_dinner(client, group_id).json()["expense"]["expense_id"]

    payer = client.get("/v1/settlements", headers=as_user("u_payer")).json()
    debtor = client.get("/v1/settlements", headers=as_user("u_m1")).json()

    assert payer["legacy_entries"] == [{"reference": expense_id, "amount": pytest.approx(-200.0)}]
    assert payer["total_owed_to_you"] == pytest.approx(200.0)
    assert payer["total_owed"] == 0.0
    assert [row["amount"] for row in debtor["legacy_entries"]] == [pytest.approx(100.0)]
    assert debtor["total_owed"] == pytest.approx(100.0)


def test_late_signup_is_promoted_on_resolve(client: TestClient, group_id: str, service_headers):
    client.put(
        "/v1/accounts/u_late", json={"name": "Latecomer", "email": "LATE@example.com"}, headers=service_headers
    )

    response = client.post(f"/v1/groups/{group_id}/resolve", headers=as_user("u_payer"))

    assert response.status_code == 200
    data = response.json()
    assert data["promoted_emails"] == ["late@example.com"]
    assert data["group"]["pending_emails"] == []
    assert "u_late" in {m["account_id"] for m in data["group"]["members"]}


def test_add_members_endpoint(client: TestClient, group_id: str):
    response = client.post(
        f"/v1/groups/{group_id}/members",
        json={"emails": ["someone@example.com"]},
        headers=as_user("u_m2"),
    )

    assert response.status_code == 200
    assert set(response.json()["group"]["pending_emails"]) == {"late@example.com", "someone@example.com"}


def test_delete_group(client: TestClient, group_id: str):
    post_dinner(client, group_id)

    assert client.delete(f"/v1/groups/{group_id}", headers=as_user("u_m1")).status_code == 403
    assert client.delete(f"/v1/groups/{group_id}", headers=as_user("u_payer")).status_code == 204
    assert client.get(f"/v1/groups/{group_id}", headers=as_user("u_payer")).status_code == 404
    assert client.get("/v1/balances/me", headers=as_user("u_m1")).json()["total_owed"] == 0.0


def test_monthly_analytics(client: TestClient, group_id: str):
    post_dinner(client, group_id)
    post_dinner(client, group_id, description="Taxi to station", amount=60, date="2024-05-20")

    data = client.get("/v1/analytics/monthly?year=2024&month=5", headers=as_user("u_m2")).json()

    assert data["total"] == pytest.approx(120.0)
    assert data["categories"] == {"Food": pytest.approx(100.0), "Travel": pytest.approx(20.0)}

    groups = client.get("/v1/analytics/groups", headers=as_user("u_m2")).json()["groups"]
    assert groups[0]["total"] == pytest.approx(120.0)
