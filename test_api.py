"""
API Endpoint Tests

Exercises the FastAPI routes with the Hillebrand client and database
path replaced through dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient

from api.routes import logistics
from api.server import create_app
from connectors.hillebrand.hb_errors import AuthConfigurationError, ExternalApiError
from core.models.logistics import LocalShipment
from storage.logistics_db import insert_shipment


@pytest.fixture
def api(db_path, make_client):
    """Return (TestClient, set_routes) with the Hillebrand client faked."""
    app = create_app()
    state = {"client": make_client({})}

    async def override_client():
        yield state["client"]

    app.dependency_overrides[logistics.get_client] = override_client
    app.dependency_overrides[logistics.get_db_path] = lambda: db_path

    def set_routes(routes):
        state["client"] = make_client(routes)
        return state["client"]

    return TestClient(app), set_routes


class TestSyncEndpoints:

    def test_shipment_sync(self, api):
        http, set_routes = api
        set_routes({
            "shipments": [{"id": 1, "status": "delivered"}],
            "shipments/1": {"id": 1, "status": "delivered"},
        })

        response = http.post("/logistics/sync/shipments")

        assert response.status_code == 200
        body = response.json()
        assert body["sync_type"] == "shipments"
        assert body["created"] == 1
        assert body["records"][0]["label"].startswith("HB-")

    def test_invoice_sync_with_link_policy(self, api):
        http, set_routes = api
        set_routes({
            "invoices": [{
                "id": 7,
                "invoiceNumber": "INV-7",
                "invoiceDate": "2025-02-01",
                "totalAmount": 100,
                "openAmount": 0,
                "invoiceStatus": "paid",
            }],
        })

        response = http.post("/logistics/sync/invoices", params={"link_policy": "per_shipment"})

        assert response.status_code == 200
        assert response.json()["created"] == 1
        assert response.json()["linked"] == 0

    def test_invalid_link_policy_rejected(self, api):
        http, _ = api
        assert http.post("/logistics/sync/invoices", params={"link_policy": "sometimes"}).status_code == 422

    def test_document_sync_reports_bad_document_type(self, api, db_path):
        http, set_routes = api
        insert_shipment(LocalShipment(external_shipment_id=500, shipment_number="HB-2025-0001"), db_path)
        set_routes({"shipments/500/documents": [{"id": 4, "documentType": {"code": "BL"}}]})

        response = http.post("/logistics/sync/documents")

        assert response.status_code == 200
        assert response.json()["errors"] == 1
        assert response.json()["records"][0]["document_type"] == "{'code': 'BL'}"

    def test_document_sync_with_no_shipments(self, api):
        http, _ = api

        response = http.post("/logistics/sync/documents")

        assert response.status_code == 200
        assert response.json()["records"] == []

    def test_listing_failure_maps_to_bad_gateway(self, api):
        http, set_routes = api
        set_routes({"shipments": ExternalApiError("Hillebrand API error: 500 - boom", 500, "boom")})

        response = http.post("/logistics/sync/shipments")

        assert response.status_code == 502

    def test_missing_credentials_map_to_service_unavailable(self, api):
        http, set_routes = api
        set_routes({"invoices": AuthConfigurationError("Missing Hillebrand credentials: password")})

        response = http.post("/logistics/sync/invoices")

        assert response.status_code == 503
        assert "password" in response.json()["detail"]


class TestEventsEndpoint:

    def test_events_flattened(self, api):
        http, set_routes = api
        set_routes({"shipments/42/events": {"events": [{
            "id": 1,
            "eventType": "DEPARTED",
            "eventDateTime": "2025-03-01T10:00:00Z",
            "location": {"cityName": "Le Havre", "countryCode": "FR"},
            "vessel": {"name": "MSC Aurora"},
        }]}})

        response = http.get("/logistics/shipments/42/events")

        assert response.status_code == 200
        assert response.json() == [{
            "id": 1,
            "event_type": "DEPARTED",
            "event_date_time": "2025-03-01T10:00:00Z",
            "description": None,
            "city": "Le Havre",
            "country": "FR",
            "vessel_name": "MSC Aurora",
        }]

    def test_unknown_shipment_is_404(self, api):
        http, _ = api
        assert http.get("/logistics/shipments/999/events").status_code == 404

    @pytest.mark.parametrize("bad_event", ["not-an-event", {"id": "first"}])
    def test_malformed_event_maps_to_bad_gateway(self, api, bad_event):
        http, set_routes = api
        set_routes({"shipments/42/events": {"events": [{"id": 1, "eventType": "BOOKED"}, bad_event]}})

        response = http.get("/logistics/shipments/42/events")

        assert response.status_code == 502
        assert "malformed event" in response.json()["detail"]


class TestHealth:

    def test_live(self, api):
        http, _ = api
        assert http.get("/live").json() == {"status": "alive"}

    def test_not_ready_without_credentials(self, api, monkeypatch, db_path):
        http, _ = api
        monkeypatch.setenv("LOGISTICS_DB_PATH", str(db_path))
        for name in ("CLIENT_ID", "CLIENT_SECRET", "USERNAME", "PASSWORD"):
            monkeypatch.delenv(f"HILLEBRAND_{name}", raising=False)

        assert http.get("/ready").status_code == 503
        health = http.get("/health").json()
        assert health["services"]["hillebrand"] == "not_configured"
        assert health["services"]["storage"] == "up"

    def test_ready_with_credentials(self, api, monkeypatch, db_path):
        http, _ = api
        monkeypatch.setenv("LOGISTICS_DB_PATH", str(db_path))
        for name in ("CLIENT_ID", "CLIENT_SECRET", "USERNAME", "PASSWORD"):
            monkeypatch.setenv(f"HILLEBRAND_{name}", "x")

        assert http.get("/ready").json() == {"status": "ready"}

    def test_metrics(self, api):
        http, _ = api
        summary = http.get("/logistics/metrics").json()
        assert set(summary) == {"runs", "records", "tokens", "timings"}
