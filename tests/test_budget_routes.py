from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import FOOD, SALARY, TRANSPORT
from main import get_app
from settings.deps import get_budget_service


@pytest.fixture
def client(service):
    app = get_app(connect_db=False)
    app.dependency_overrides[get_budget_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def headers(user_id):
    return {"X-User-ID": str(user_id)}


def _body(**overrides):
    body = {"category_id": FOOD, "monthly_limit": "200000", "month": 10, "year": 2025}
    body.update(overrides)
    return body


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_and_fetch(client, headers, ledger, user_id):
    res = client.post("/budgets/", json=_body(), headers=headers)
    assert res.status_code == 201
    created = res.json()
    assert created["alert_threshold"] == 80

    ledger.add(user_id, FOOD, "160000", date(2025, 10, 10))
    res = client.get(f"/budgets/{created['id']}", headers=headers)

    assert res.status_code == 200
    info = res.json()
    assert Decimal(info["status"]["current_spent"]) == Decimal("160000")
    assert Decimal(info["status"]["percentage"]) == Decimal("80")
    assert info["status"]["should_alert"] is True
    assert Decimal(info["projection"]["projected_total"]) == Decimal("248000")


def test_missing_user_header(client):
    assert client.get("/budgets/").status_code == 400
    assert client.get("/budgets/", headers={"X-User-ID": "not-a-uuid"}).status_code == 400


@pytest.mark.parametrize(
    "overrides",
    [
        {"monthly_limit": "0"},
        {"monthly_limit": "-10"},
        {"alert_threshold": 0},
        {"alert_threshold": 101},
        {"month": 13},
        {"description": "x" * 301},
    ],
)
def test_create_rejects_invalid_fields(client, headers, overrides):
    res = client.post("/budgets/", json=_body(**overrides), headers=headers)
    assert res.status_code == 422


def test_create_rejects_missing_fields(client, headers):
    res = client.post("/budgets/", json={"monthly_limit": "10"}, headers=headers)
    assert res.status_code == 422
    fields = {err["loc"][-1] for err in res.json()["detail"]}
    assert {"category_id", "month", "year"} <= fields


def test_create_income_category_is_field_error(client, headers):
    res = client.post("/budgets/", json=_body(category_id=SALARY), headers=headers)

    assert res.status_code == 400
    assert res.json()["detail"]["details"][0]["field"] == "category_id"


def test_duplicate_is_conflict(client, headers):
    first = client.post("/budgets/", json=_body(), headers=headers).json()
    res = client.post("/budgets/", json=_body(), headers=headers)

    assert res.status_code == 409
    assert res.json()["detail"]["existing_id"] == first["id"]


def test_other_users_budget_is_not_found(client, headers, other_user_id):
    created = client.post("/budgets/", json=_body(), headers=headers).json()

    res = client.get(f"/budgets/{created['id']}", headers={"X-User-ID": str(other_user_id)})
    assert res.status_code == 404


def test_update_and_deactivate(client, headers):
    created = client.post("/budgets/", json=_body(), headers=headers).json()

    res = client.put(f"/budgets/{created['id']}", json={"alert_threshold": 60}, headers=headers)
    assert res.status_code == 200
    assert res.json()["alert_threshold"] == 60

    res = client.post(f"/budgets/{created['id']}/deactivate", headers=headers)
    assert res.status_code == 200
    assert res.json()["is_active"] is False

    res = client.put(f"/budgets/{created['id']}", json={"alert_threshold": 70}, headers=headers)
    assert res.status_code == 400

    res = client.post(f"/budgets/{created['id']}/activate", headers=headers)
    assert res.json()["is_active"] is True


def test_delete(client, headers):
    created = client.post("/budgets/", json=_body(), headers=headers).json()

    assert client.delete(f"/budgets/{created['id']}", headers=headers).status_code == 200
    assert client.get(f"/budgets/{created['id']}", headers=headers).status_code == 404


def test_portfolio_endpoints(client, headers, ledger, user_id):
    client.post("/budgets/", json=_body(monthly_limit="300000"), headers=headers)
    client.post("/budgets/", json=_body(category_id=TRANSPORT, monthly_limit="200000"), headers=headers)
    ledger.add(user_id, FOOD, "200000", date(2025, 10, 1))
    ledger.add(user_id, TRANSPORT, "250000", date(2025, 10, 1))

    summary = client.get("/budgets/summary", headers=headers).json()
    assert Decimal(summary["total_limit"]) == Decimal("500000")
    assert Decimal(summary["total_spent"]) == Decimal("450000")
    assert Decimal(summary["overall_percentage"]) == Decimal("90")
    assert summary["exceeded_count"] == 1

    current = client.get("/budgets/current", headers=headers).json()
    assert current["total_budgets"] == 2

    exceeded = client.get("/budgets/exceeded", headers=headers).json()
    assert [b["category_id"] for b in exceeded] == [TRANSPORT]

    alerts = client.get("/budgets/alerts", headers=headers).json()
    assert [b["category_id"] for b in alerts] == [TRANSPORT]

    listed = client.get("/budgets/", params={"month": 10, "status": "active"}, headers=headers).json()
    assert len(listed) == 2


def test_bulk_create(client, headers):
    res = client.post(
        "/budgets/bulk",
        json={"budgets": [_body(), _body(category_id=SALARY)]},
        headers=headers,
    )

    assert res.status_code == 201
    assert res.json()["created"] == 1
    assert res.json()["failed"] == 1
    assert client.post("/budgets/bulk", json={"budgets": []}, headers=headers).status_code == 422


def test_next_month(client, headers, clock):
    clock.today = date(2025, 12, 31)
    client.post("/budgets/", json=_body(month=12), headers=headers)

    res = client.post("/budgets/next-month", headers=headers)

    assert res.status_code == 200
    body = res.json()
    assert (body["target_month"], body["target_year"]) == (1, 2026)
    assert len(body["created"]) == 1

    again = client.post("/budgets/next-month", headers=headers).json()
    assert again["created"] == []


def test_suggest(client, headers, ledger, user_id):
    ledger.add(user_id, FOOD, "300", date(2025, 9, 1))

    res = client.get("/budgets/suggest", params={"category_id": FOOD, "months": 1}, headers=headers)

    assert res.status_code == 200
    assert Decimal(res.json()["suggested_limit"]) == Decimal("330")
