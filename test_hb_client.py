"""
Hillebrand API Client Tests

Covers the request wrapper (headers, errors, token invalidation), list
envelope decoding and bounded pagination.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from connectors.hillebrand.hb_client import (
    EnvelopeShape,
    HBApiClient,
    HBApiConfig,
    SHIPMENT_ENVELOPES,
    decode_envelope,
)
from connectors.hillebrand.hb_errors import ExternalApiError, ResponseShapeError


def make_real_client(send_result, **config):
    auth = MagicMock()
    auth.get_access_token = AsyncMock(return_value="tok-abc")
    client = HBApiClient(auth, HBApiConfig(base_url="https://api.test", **config))
    client._send = AsyncMock(return_value=send_result)
    return client, auth


class TestRequest:

    async def test_attaches_bearer_and_json_headers(self):
        client, _ = make_real_client((200, "[]"))

        await client.request("GET", "shipments", params={"page": 2, "status": None})

        method, url, headers, params, json_body = client._send.call_args.args
        assert method == "GET"
        assert url == "https://api.test/v6/shipments"
        assert headers["Authorization"] == "Bearer tok-abc"
        assert headers["Accept"] == "application/json"
        assert headers["Content-Type"] == "application/json"
        assert params == {"page": "2"}
        assert json_body is None

    async def test_parses_json_body(self):
        client, _ = make_real_client((200, json.dumps({"id": 7, "status": "shipped"})))
        assert await client.request("GET", "shipments/7") == {"id": 7, "status": "shipped"}

    async def test_empty_body_returns_none(self):
        client, _ = make_real_client((204, ""))
        assert await client.request("GET", "shipments/7") is None

    async def test_non_2xx_raises_with_status_and_body(self):
        client, auth = make_real_client((500, "upstream exploded"))

        with pytest.raises(ExternalApiError) as exc_info:
            await client.request("GET", "invoices")

        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "upstream exploded"
        auth.invalidate.assert_not_called()

    async def test_401_invalidates_cached_token_without_retry(self):
        client, auth = make_real_client((401, "expired"))

        with pytest.raises(ExternalApiError) as exc_info:
            await client.request("GET", "shipments")

        assert exc_info.value.status_code == 401
        auth.invalidate.assert_called_once()
        assert client._send.await_count == 1

    async def test_invalid_json_raises(self):
        client, _ = make_real_client((200, "<html/>"))

        with pytest.raises(ExternalApiError):
            await client.request("GET", "shipments")


class TestEnvelopeDecoding:

    def test_bare_array(self):
        shape, records = decode_envelope([{"id": 1}], SHIPMENT_ENVELOPES)
        assert shape == EnvelopeShape.BARE_ARRAY
        assert records == [{"id": 1}]

    @pytest.mark.parametrize("key", ["shipments", "data", "items", "content"])
    def test_keyed_shapes(self, key):
        shape, records = decode_envelope({key: [{"id": 1}], "total": 1}, SHIPMENT_ENVELOPES)
        assert shape.value == key
        assert records == [{"id": 1}]

    def test_first_matching_key_wins(self):
        shape, records = decode_envelope({"data": [{"id": 2}], "shipments": [{"id": 1}]}, SHIPMENT_ENVELOPES)
        assert shape == EnvelopeShape.SHIPMENTS
        assert records == [{"id": 1}]

    def test_empty_keyed_list_is_valid(self):
        _, records = decode_envelope({"items": []}, SHIPMENT_ENVELOPES)
        assert records == []

    def test_unknown_object_fails_loudly(self):
        with pytest.raises(ResponseShapeError) as exc_info:
            decode_envelope({"results": [{"id": 1}]}, SHIPMENT_ENVELOPES)
        assert "results" in str(exc_info.value)

    def test_key_holding_non_list_is_not_a_match(self):
        with pytest.raises(ResponseShapeError):
            decode_envelope({"data": {"id": 1}}, SHIPMENT_ENVELOPES)

    def test_scalar_payload_fails(self):
        with pytest.raises(ResponseShapeError):
            decode_envelope("nope", SHIPMENT_ENVELOPES)

    def test_response_shape_error_is_an_api_error(self):
        assert issubclass(ResponseShapeError, ExternalApiError)


class TestShipmentListing:

    async def test_list_shipments_query_params(self, make_client):
        client = make_client({"shipments": []})

        await client.list_shipments(page=3, page_size=25, status="arrived", modified_since="2025-01-01T00:00:00Z")

        _, _, params = client.calls[0]
        assert params == {
            "page": 3,
            "pageSize": 25,
            "status": "arrived",
            "reference": None,
            "modifiedSinceTimeStamp": "2025-01-01T00:00:00Z",
        }

    async def test_pagination_stops_on_short_page(self, make_client):
        pages = {1: [{"id": i} for i in range(3)], 2: [{"id": i} for i in range(3, 6)], 3: [{"id": 6}]}
        client = make_client({"shipments": lambda params: {"data": pages[params["page"]]}})

        shipments = await client.list_all_shipments(page_size=3)

        assert [s["id"] for s in shipments] == list(range(7))
        assert [c[2]["page"] for c in client.calls] == [1, 2, 3]

    async def test_pagination_exact_multiple_fetches_empty_last_page(self, make_client):
        pages = {1: [{"id": 1}, {"id": 2}], 2: []}
        client = make_client({"shipments": lambda params: pages[params["page"]]})

        shipments = await client.list_all_shipments(page_size=2)

        assert len(shipments) == 2
        assert len(client.calls) == 2

    async def test_pagination_bounded_by_max_pages(self, make_client):
        client = make_client(
            {"shipments": lambda params: [{"id": params["page"] * 10 + i} for i in range(2)]},
            max_pages=4,
        )

        shipments = await client.list_all_shipments(page_size=2)

        assert len(client.calls) == 4
        assert len(shipments) == 8

    async def test_by_status_deduplicates(self, make_client):
        by_status = {
            "shipped": [{"id": 1}, {"id": 2}],
            "arrived": [{"id": 2}, {"id": 3}],
            "delivered": [{"id": 1}],
        }
        client = make_client({"shipments": lambda params: by_status[params["status"]]})

        shipments = await client.list_shipments_by_status(["shipped", "arrived", "delivered"])

        assert [s["id"] for s in shipments] == [1, 2, 3]

    async def test_by_status_skip_failed(self, make_client):
        def route(params):
            if params["status"] == "arrived":
                return ExternalApiError("boom", 500, "")
            return [{"id": params["status"]}]

        client = make_client({"shipments": route})

        shipments = await client.list_shipments_by_status(["shipped", "arrived", "delivered"], skip_failed=True)
        assert [s["id"] for s in shipments] == ["shipped", "delivered"]

        with pytest.raises(ExternalApiError):
            await client.list_shipments_by_status(["shipped", "arrived"])


class TestDetailHelpers:

    async def test_shipment_documents_envelope(self, make_client):
        client = make_client({"shipments/42/documents": {"documents": [{"id": 1}]}})
        assert await client.get_shipment_documents(42) == [{"id": 1}]

    async def test_shipment_events_bare_array(self, make_client):
        client = make_client({"shipments/42/events": [{"eventType": "DEP"}]})
        assert await client.get_shipment_events(42) == [{"eventType": "DEP"}]

    async def test_invoice_listing_and_lines(self, make_client):
        client = make_client({
            "invoices": {"content": [{"id": 5}]},
            "invoices/5/lines": {"lines": [{"id": 50}]},
        })

        assert await client.list_all_invoices(page_size=100) == [{"id": 5}]
        assert await client.get_invoice_lines(5) == [{"id": 50}]

    async def test_get_shipment_propagates_not_found(self, make_client):
        client = make_client({})

        with pytest.raises(ExternalApiError) as exc_info:
            await client.get_shipment(99)
        assert exc_info.value.status_code == 404
