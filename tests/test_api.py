import pytest
from fastapi.testclient import TestClient

from database import Base, make_engine, make_session_factory
from main import app, get_db, metrics_cache
from services import CategoryService


@pytest.fixture()
def client():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    TestingSession = make_session_factory(engine)
    with TestingSession() as session:
        CategoryService(session).ensure_defaults()

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    metrics_cache.clear()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    metrics_cache.clear()


def _post(client, when, type_, amount, key, description=None):
    response = client.post(
        "/api/transactions",
        json={
            "date": when,
            "type": type_,
            "amount": amount,
            "categoryKey": key,
            "description": description,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_categories_are_grouped_by_type(client):
    body = client.get("/api/categories").json()
    assert body["income"][0]["key"] == "salary"
    assert "food" in [category["key"] for category in body["expense"]]


def test_create_transaction_with_unknown_category_fails(client):
    response = client.post(
        "/api/transactions",
        json={"date": "2024-03-05T09:00:00", "type": "income", "amount": 1, "categoryKey": "food"},
    )
    assert response.status_code == 400


def test_filtered_list_summary_and_breakdown(client):
    _post(client, "2024-03-01T09:00:00", "income", 1000, "salary")
    _post(client, "2024-03-05T12:00:00", "expense", 300, "food", "Dinner")
    _post(client, "2024-03-06T12:00:00", "expense", 200, "food")
    _post(client, "2024-04-01T12:00:00", "expense", 50, "transport")

    params = {"period": "custom", "start": "2024-03-01", "end": "2024-03-31"}
    listed = client.get("/api/transactions", params=params).json()
    assert [item["amount"] for item in listed] == [200.0, 300.0, 1000.0]

    searched = client.get("/api/transactions", params={**params, "search": "dinner"}).json()
    assert [item["description"] for item in searched] == ["Dinner"]

    summary = client.get("/api/summary/filtered", params=params).json()
    assert summary == {
        "totalIncome": 1000.0,
        "totalExpense": 500.0,
        "balance": 500.0,
        "count": 3,
    }

    entries = client.get("/api/breakdown", params=params).json()
    assert entries == [{"categoryKey": "food", "amount": 500.0, "percentage": 100.0}]

    assert client.get("/api/summary").json()["count"] == 4


def test_invalid_filters_are_rejected(client):
    bad_range = {"period": "custom", "start": "2024-03-10", "end": "2024-03-01"}
    assert client.get("/api/summary/filtered", params=bad_range).status_code == 400
    assert client.get("/api/transactions", params={"period": "fortnight"}).status_code == 400
    assert client.get("/api/breakdown", params={"breakdown": "transfer"}).status_code == 400


def test_statistics_and_daily_stats(client):
    _post(client, "2024-02-10T09:00:00", "income", 100, "salary")
    _post(client, "2024-02-10T20:00:00", "expense", 40, "food")

    stats = client.get("/api/statistics", params={"year": 2024, "month": 2}).json()
    assert stats["summary"]["balance"] == 60.0
    assert stats["expenseBreakdown"][0]["categoryKey"] == "food"

    daily = client.get("/api/daily-stats", params={"year": 2024, "month": 2}).json()
    assert len(daily) == 29
    assert (daily[9]["income"], daily[9]["expense"]) == (100.0, 40.0)

    assert client.get("/api/daily-stats", params={"year": 2024, "month": 13}).status_code == 400
    assert client.get("/api/statistics", params={"year": "x", "month": 1}).status_code == 400


def test_delete_transaction(client):
    created = _post(client, "2024-03-01T09:00:00", "expense", 5, "snacks")
    assert client.delete(f"/api/transactions/{created['id']}").status_code == 200
    assert client.delete(f"/api/transactions/{created['id']}").status_code == 404


def test_assets_total_and_trend(client):
    savings = client.post("/api/assets", json={"name": "Savings"}).json()
    loan = client.post("/api/assets", json={"name": "Loan"}).json()
    client.post(f"/api/assets/{savings['id']}/records", json={"date": "2024-02-01", "amount": "500"})
    client.post(f"/api/assets/{savings['id']}/records", json={"date": "2024-01-01", "amount": "200"})
    client.post(f"/api/assets/{loan['id']}/records", json={"date": "2024-01-15", "amount": "-150"})

    body = client.get("/api/assets").json()
    assert body["totalAssets"] == 350.0
    assert [asset["latestAmount"] for asset in body["assets"]] == [500.0, -150.0]

    trend = client.get(f"/api/assets/{savings['id']}/trend").json()
    assert [point["date"] for point in trend] == ["2024-01-01", "2024-02-01"]

    assert client.get("/api/assets/999/trend").status_code == 404


def test_auto_transactions_toggle_and_delete(client):
    response = client.post(
        "/api/auto-transactions",
        json={
            "type": "expense",
            "amount": 1200,
            "categoryKey": "housing",
            "frequency": "monthly",
            "dayOfMonth": 31,
            "nextExecutionDate": "2024-01-31",
        },
    )
    assert response.status_code == 201, response.text
    auto = response.json()
    assert auto["isActive"] is True

    toggled = client.post(f"/api/auto-transactions/{auto['id']}/toggle").json()
    assert toggled["isActive"] is False

    assert client.delete(f"/api/auto-transactions/{auto['id']}").status_code == 204
    assert client.get("/api/auto-transactions").json() == []


def test_metrics_are_shared_across_requests_until_a_write(client):
    _post(client, "2024-03-01T09:00:00", "income", 100, "salary")

    assert client.get("/api/summary").json()["count"] == 1
    cached = len(metrics_cache)
    assert cached > 0
    assert client.get("/api/summary").json()["count"] == 1
    assert len(metrics_cache) == cached

    _post(client, "2024-03-02T09:00:00", "expense", 30, "food")
    summary = client.get("/api/summary").json()
    assert (summary["count"], summary["balance"]) == (2, 70.0)
