from decimal import Decimal

from conftest import register

EXPENSE = {
    "title": "Groceries run",
    "category": "Groceries",
    "amount": "82.40",
    "date": "2024-01-10",
    "payment_method": "Credit Card",
}


def test_create_and_fetch_expense(client, auth_headers):
    resp = client.post("/api/expenses", json=EXPENSE, headers=auth_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["is_recurring"] is False
    assert body["recurring_expense_id"] is None
    assert Decimal(body["amount"]) == Decimal("82.40")

    fetched = client.get(f"/api/expenses/{body['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Groceries run"


def test_payment_method_defaults_to_cash(client, auth_headers):
    payload = {k: v for k, v in EXPENSE.items() if k != "payment_method"}
    body = client.post("/api/expenses", json=payload, headers=auth_headers).json()
    assert body["payment_method"] == "Cash"


def test_expenses_are_owner_scoped(client, auth_headers):
    created = client.post("/api/expenses", json=EXPENSE, headers=auth_headers).json()
    bob = register(client, "bob")

    assert client.get("/api/expenses", headers=bob).json() == []
    assert client.get(f"/api/expenses/{created['id']}", headers=bob).status_code == 404
    assert client.delete(f"/api/expenses/{created['id']}", headers=bob).status_code == 404


def test_delete_expense(client, auth_headers):
    created = client.post("/api/expenses", json=EXPENSE, headers=auth_headers).json()
    resp = client.delete(f"/api/expenses/{created['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert client.get("/api/expenses", headers=auth_headers).json() == []


def test_rejects_negative_amount(client, auth_headers):
    resp = client.post("/api/expenses", json={**EXPENSE, "amount": "-1"}, headers=auth_headers)
    assert resp.status_code == 422
