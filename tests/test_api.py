import inspect

import pytest
from fastapi import APIRouter
from fastapi.testclient import TestClient

from tripcost.core.config import Settings
from tripcost.core.errors import ConfirmationConflict
from tripcost.main import create_app
from tripcost.routers import cost_forecast, rates


@pytest.fixture
def trip(app_db):
    trip_id = app_db.create_trip("API trip", base_currency="USD")
    alice = app_db.add_traveler(trip_id, "Alice", is_primary=True, currency="USD")
    bob = app_db.add_traveler(trip_id, "Bob")
    carol = app_db.add_traveler(trip_id, "Carol")
    app_db.add_line_item(
        "accommodations", trip_id, "Guesthouse", 90.0, "USD", traveler_ids=(alice, bob, carol)
    )
    app_db.add_line_item("flights", trip_id, "Train", 46.0, "EUR", traveler_ids=(alice, bob))
    return trip_id, alice, bob, carol


def test_health_and_request_id(client):
    resp = client.get("/health", headers={"x-request-id": "abc-123"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["x-request-id"] == "abc-123"


def test_unknown_route_json_error(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_forecast_lifecycle(client, trip):
    trip_id, alice, bob, carol = trip
    assert client.get(f"/trips/{trip_id}/cost-forecast").status_code == 404

    resp = client.post(f"/trips/{trip_id}/cost-forecast")
    assert resp.status_code == 200
    body = resp.json()
    assert body["base_currency"] == "USD"
    modules = {m["module"]: m for m in body["module_breakdown"]}
    assert modules["accommodations"]["total"] == 90.0
    assert modules["flights"]["total"] == 50.0  # 46 EUR at 0.92 per USD
    assert body["total_cost"] == 140.0
    shares = {s["traveler_id"]: s["share_amount"] for s in body["traveler_shares"]}
    assert shares == {alice: 55.0, bob: 55.0, carol: 30.0}

    again = client.get(f"/trips/{trip_id}/cost-forecast")
    assert again.status_code == 200
    assert again.json() == body


def test_forecast_status_validation(client, trip):
    trip_id, *_ = trip
    resp = client.post(f"/trips/{trip_id}/cost-forecast", json={"statuses": ["booked"]})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"

    resp = client.post(f"/trips/{trip_id}/cost-forecast", json={"statuses": ["DRAFT"]})
    assert resp.status_code == 200
    assert resp.json()["status_filter"] == ["draft"]
    assert resp.json()["total_cost"] == 0.0


def test_forecast_unknown_trip(client):
    assert client.post("/trips/999/cost-forecast").status_code == 404


def test_actuals_flow_and_settlement(client, trip):
    trip_id, alice, bob, carol = trip
    client.post(f"/trips/{trip_id}/cost-forecast")
    base = f"/trips/{trip_id}/expense-actuals"

    assert client.post(f"{base}/transfer").json() == {"transferred_count": 5}
    assert client.post(f"{base}/transfer").json() == {"transferred_count": 0}

    actuals = client.get(base).json()
    assert len(actuals) == 5
    for a in actuals:
        resp = client.patch(f"{base}/{a['actual_id']}", json={"paid_by_traveler_id": alice})
        assert resp.status_code == 200
        assert resp.json()["paid_by_name"] == "Alice"

    assert len(client.get(base, params={"traveler_id": bob}).json()) == 2
    assert len(client.get(base, params={"paid_by": alice}).json()) == 5
    assert client.get(base, params={"paid_by": bob}).json() == []

    summary = client.get(f"{base}/settlement").json()
    assert summary["total_actual"] == 140.0
    assert summary["variance"] == 0.0
    plan = {(s["from_traveler_id"], s["to_traveler_id"]): s["amount"] for s in summary["settlements"]}
    assert plan == {(bob, alice): 55.0, (carol, alice): 30.0}

    assert client.post(f"{base}/reset").json() == {"deleted_count": 5}
    assert client.get(base).json() == []


def test_patch_semantics_and_errors(client, trip, app_db):
    trip_id, alice, *_ = trip
    client.post(f"/trips/{trip_id}/cost-forecast")
    base = f"/trips/{trip_id}/expense-actuals"
    client.post(f"{base}/transfer")
    actual = client.get(base).json()[0]
    url = f"{base}/{actual['actual_id']}"

    resp = client.patch(url, json={"actual_notes": "cash", "actual_date": "2026-04-01"})
    assert resp.json()["actual_amount"] == actual["actual_amount"]
    assert resp.json()["actual_notes"] == "cash"

    resp = client.patch(url, json={"actual_notes": None})
    assert resp.json()["actual_notes"] is None
    assert resp.json()["actual_date"] == "2026-04-01"

    assert client.patch(url, json={"actual_amount": -5}).status_code == 422
    assert client.patch(url, json={"actual_amount": None}).status_code == 422

    other = app_db.create_trip("Other")
    stranger = app_db.add_traveler(other, "Stranger")
    assert client.patch(url, json={"paid_by_traveler_id": stranger}).status_code == 400

    assert client.patch(f"/trips/{other}/expense-actuals/{actual['actual_id']}", json={}).status_code == 404
    assert client.patch(f"{base}/99999", json={}).status_code == 404


def test_actuals_unknown_trip(client):
    resp = client.get("/trips/999/expense-actuals")
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "detail": "trip 999 not found"}
    assert client.post("/trips/999/expense-actuals/transfer").status_code == 404
    assert client.get("/trips/999/expense-actuals/settlement").status_code == 404


def test_exchange_rates_endpoint(client):
    resp = client.get("/exchange-rates", params={"base": "usd", "symbols": "EUR,JPY,ZZZ"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["base"] == "USD"
    assert body["rates"]["EUR"] == pytest.approx(0.92)
    assert "ZZZ" not in body["rates"]
    assert client.get("/exchange-rates", params={"symbols": ""}).status_code == 400


def test_rate_overrides_endpoints(client, trip):
    trip_id, *_ = trip
    resp = client.post(
        "/rates/overrides",
        json={"from_currency": "usd", "to_currency": "eur", "rate": 0.5, "ttl_seconds": 60},
    )
    assert resp.status_code == 200
    assert resp.json()["pair"] == "USD/EUR"
    assert "USD/EUR" in client.get("/rates/overrides").json()

    body = client.post(f"/trips/{trip_id}/cost-forecast").json()
    flights = next(m for m in body["module_breakdown"] if m["module"] == "flights")
    assert flights["total"] == 92.0

    assert client.delete("/rates/overrides/USD/EUR").status_code == 200
    assert client.delete("/rates/overrides/USD/EUR").status_code == 404
    bad = client.post(
        "/rates/overrides", json={"from_currency": "USD", "to_currency": "USD", "rate": 1}
    )
    assert bad.status_code == 422


def test_rate_overrides_disabled(tmp_path):
    settings = Settings(db_path=tmp_path / "off.sqlite3", enable_rate_override=False, debug=False)
    with TestClient(create_app(settings)) as c:
        assert c.get("/rates/overrides").status_code == 403


def test_confirmation_conflict_maps_to_409(app):
    router = APIRouter()

    @router.post("/stays/confirm")
    async def confirm():
        raise ConfirmationConflict("stay overlaps an already confirmed stay")

    app.include_router(router)
    with TestClient(app) as c:
        resp = c.post("/stays/confirm")
    assert resp.status_code == 409
    assert resp.json()["error"] == "confirmation_conflict"


def test_unhandled_error_is_500_json(app):
    router = APIRouter()

    @router.get("/explode")
    async def explode():
        raise RuntimeError("boom")

    app.include_router(router)
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.get("/explode")
    assert resp.status_code == 500
    assert resp.json()["error"] == "internal_error"


def test_rate_fetching_endpoints_run_off_the_event_loop():
    assert not inspect.iscoroutinefunction(cost_forecast.collect_costs_endpoint)
    assert not inspect.iscoroutinefunction(rates.get_exchange_rates)
