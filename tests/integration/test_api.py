"""
Integration tests for the HTTP API using FastAPI's TestClient.

Engine singletons are replaced through dependency overrides with an
in-memory ledger and a fake spend provider.
"""
import asyncio
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from core.aggregation import AggregationEngine
from core.duckdb_store import DuckDBStore
from core.exceptions import SheetsAuthorizationError
from core.ledger import RevenueLedger
from core.lookup import SheetLookupEngine
from core.observability import metrics
from web.main import app
from web.routes.api._deps import limiter
from web.services.report_service import get_engine, get_ledger, get_lookup_engine
from tests.fakes import MINUTE, FakeClock, FakeSheetsProvider


class Now:
    """Settable wall clock for the ledger."""

    def __init__(self, value: datetime):
        self.value = value

    def __call__(self) -> datetime:
        return self.value


@pytest.fixture
def now():
    return Now(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def api(artur_sheets, now):
    """TestClient plus the objects behind it."""
    store = DuckDBStore(":memory:", query_timeout=10)
    ledger = RevenueLedger(store, tz=ZoneInfo("Europe/Moscow"), now=now)
    provider = FakeSheetsProvider(artur_sheets)
    lookup = SheetLookupEngine(provider, ttl_seconds=30 * MINUTE, clock=FakeClock())
    engine = AggregationEngine(ledger, lookup)

    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_lookup_engine] = lambda: lookup
    app.dependency_overrides[get_engine] = lambda: engine
    limiter.enabled = False

    yield {"client": TestClient(app), "ledger": ledger, "provider": provider, "now": now}

    app.dependency_overrides.clear()
    limiter.enabled = True
    asyncio.run(store.close())


def _postback(client, label: str, payout):
    return client.post("/api/webhook/postback", json={"campaign_name": label, "payout": payout})


@pytest.fixture
def seeded(api):
    """Artur: 100 on 2024-01-01 and 50 on 2024-01-02 (Moscow days)."""
    client = api["client"]
    assert _postback(client, "Casino | DE | Artur", "100").status_code == 200
    api["now"].value = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
    assert _postback(client, "Casino | DE | Artur", 50).status_code == 200
    return api


class TestHealth:

    def test_health(self, api):
        response = api["client"].get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["ledger"]["status"] == "connected"
        assert data["ledger"]["buyers"] == 0
        assert "authorizations" in data["sheets"]

    def test_request_id_echoed(self, api):
        response = api["client"].get("/api/metrics", headers={"X-Request-ID": "req-42"})
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-42"
        assert "X-Response-Time" in response.headers

    def test_metrics_keyed_by_route_template(self, api):
        metrics.reset()
        client = api["client"]
        for name in ("Nobody", "Somebody", "Anybody"):
            client.get(f"/api/buyers/{name}/expenses", params={"date": "2024-01-01"})

        requests = metrics.get_stats()["requests"]
        assert requests == {"GET /api/buyers/{name}/expenses": 3}


class TestWebhook:

    def test_postback_accumulates(self, api):
        client = api["client"]
        first = _postback(client, "offer | geo | Artur", "40.9")
        second = _postback(client, "offer | geo | Artur", "40.9")

        assert first.status_code == 200
        assert first.json()["amount"] == 40
        assert first.json()["date"] == "2024-01-01"
        assert second.json()["dayIncome"] == 80
        assert second.json()["dayFirstdeps"] == 2

    def test_extra_fields_ignored(self, api):
        response = api["client"].post(
            "/api/webhook/postback",
            json={"campaign_name": "x | Boris", "payout": 5, "status": "approved", "subid": "abc"},
        )
        assert response.status_code == 200
        assert response.json()["buyer"] == "Boris"

    @pytest.mark.parametrize("body", [
        {"campaign_name": "x | Artur", "payout": "abc"},
        {"campaign_name": "x | ", "payout": 10},
        {"payout": 10},
        {"campaign_name": "x | Artur"},
    ])
    def test_invalid_postback(self, api, body):
        response = api["client"].post("/api/webhook/postback", json=body)
        assert response.status_code == 400
        assert "error" in response.json()


class TestBuyerRecords:

    def test_artur_scenario(self, seeded):
        response = seeded["client"].get(
            "/api/buyers/Artur/records",
            params={"startDate": "2024-01-01", "endDate": "2024-01-02"},
        )
        assert response.status_code == 200
        data = response.json()

        assert data["totalIncome"] == 150
        assert data["totalExpensesAgn"] + data["totalExpensesAcc"] == 15
        assert data["dailyExpensesAgn"] == 10
        assert data["dailyExpensesAcc"] == 5
        assert data["totalProfit"] == 135
        assert data["totalRoi"] == 900
        assert data["totalRecordsCount"] == 2

        first = data["records"][0]
        assert first["date"] == "2024-01-01"
        assert first["income"] == "$100"
        assert first["expensesAgn"] == 10
        assert first["expensesAcc"] == 5
        assert first["profit"] == "$85"
        assert first["Roi"] == 567

    def test_unknown_buyer_404(self, api):
        response = api["client"].get(
            "/api/buyers/Nobody/records",
            params={"startDate": "2024-01-01", "endDate": "2024-01-02"},
        )
        assert response.status_code == 404

    def test_bad_range_400(self, seeded):
        response = seeded["client"].get(
            "/api/buyers/Artur/records",
            params={"startDate": "2024-01-05", "endDate": "2024-01-01"},
        )
        assert response.status_code == 400

    def test_missing_params_422(self, seeded):
        assert seeded["client"].get("/api/buyers/Artur/records").status_code == 422


class TestBuyerDaily:

    def test_daily(self, seeded):
        response = seeded["client"].get("/api/buyers/Artur/daily", params={"date": "2024-01-01"})
        assert response.status_code == 200
        data = response.json()
        assert data["income"] == "$100"
        assert data["Roi"] == 567
        assert data["sheetName"] == "January"

    def test_unknown_buyer_is_zero(self, api):
        response = api["client"].get("/api/buyers/Nobody/daily", params={"date": "2024-01-01"})
        assert response.status_code == 200
        data = response.json()
        assert data["income"] == "$0"
        assert data["spendAvailable"] is False

    def test_bad_date(self, api):
        response = api["client"].get("/api/buyers/Artur/daily", params={"date": "01/01/2024"})
        assert response.status_code == 400


class TestBuyerExpenses:

    def test_found(self, api):
        response = api["client"].get("/api/buyers/Artur/expenses", params={"date": "2024-01-01"})
        assert response.status_code == 200
        assert response.json() == {
            "buyer": "Artur",
            "date": "2024-01-01",
            "sheetName": "January",
            "spentAgn": 10,
            "spentAcc": 5,
            "sumSpent": 15,
        }

    def test_unknown_buyer_404(self, api):
        response = api["client"].get("/api/buyers/Nobody/expenses", params={"date": "2024-01-01"})
        assert response.status_code == 404

    def test_missing_date_404(self, api):
        response = api["client"].get("/api/buyers/Artur/expenses", params={"date": "2024-01-09"})
        assert response.status_code == 404

    def test_authorization_failure_503(self, api):
        api["provider"].error = SheetsAuthorizationError("Access denied")
        response = api["client"].get("/api/buyers/Artur/expenses", params={"date": "2024-01-01"})
        assert response.status_code == 503


class TestAdmin:

    def test_all_buyers(self, seeded):
        client = seeded["client"]
        _postback(client, "x | Boris", 30)

        response = client.get("/api/admin/buyers", params={"startDate": "2024-01-01", "endDate": "2024-01-02"})
        assert response.status_code == 200
        artur, boris = response.json()

        assert artur["nameBuyer"] == "Artur"
        assert artur["totalIncome"] == "$150"
        assert artur["totalFirstdeps"] == 2
        assert artur["expensesAgn"] == 10
        assert artur["expensesAcc"] == 5
        assert artur["profit"] == "$135"
        assert artur["Roi"] == 900

        assert boris["nameBuyer"] == "Boris"
        assert boris["profit"] == "$18"

    def test_all_buyers_requires_range(self, api):
        assert api["client"].get("/api/admin/buyers").status_code == 422

    def test_reject_applied_once(self, seeded):
        client = seeded["client"]
        response = client.put("/api/admin/buyers/Artur/reject", json={"reject": 15})
        assert response.status_code == 200
        assert response.json()["reject"] == 15

        records = client.get(
            "/api/buyers/Artur/records",
            params={"startDate": "2024-01-01", "endDate": "2024-01-02"},
        ).json()
        assert records["totalIncome"] == 135
        assert records["reject"] == 15

        (summary,) = client.get(
            "/api/admin/buyers",
            params={"startDate": "2024-01-01", "endDate": "2024-01-02"},
        ).json()
        assert summary["totalIncome"] == "$135"

    def test_reject_unknown_buyer(self, api):
        response = api["client"].put("/api/admin/buyers/Nobody/reject", json={"reject": 15})
        assert response.status_code == 404

    def test_sheet_cache_invalidate(self, api):
        client = api["client"]
        client.get("/api/buyers/Artur/expenses", params={"date": "2024-01-01"})

        response = client.post("/api/admin/sheets/invalidate")
        assert response.status_code == 200
        assert response.json()["invalidated"] == 1

        client.get("/api/buyers/Artur/expenses", params={"date": "2024-01-01"})
        assert api["provider"].fetch_calls["January"] == 2
