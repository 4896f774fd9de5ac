"""Shared pytest fixtures.

FakeHBClient replaces only the HTTP request step of HBApiClient, so the
real envelope decoding, pagination and typed helpers are exercised.
"""

from datetime import datetime

import pytest

from connectors.hillebrand.hb_client import HBApiClient, HBApiConfig
from connectors.hillebrand.hb_errors import ExternalApiError
from storage.logistics_db import init_logistics_db


class FakeHBClient(HBApiClient):
    """HBApiClient whose request() is served from an in-memory route table.

    A route value is either a payload, an exception to raise, or a callable
    taking the query params and returning one of those.
    """

    def __init__(self, routes=None, max_pages: int = 100):
        super().__init__(auth_provider=None, api_config=HBApiConfig(max_pages=max_pages))
        self.routes = routes or {}
        self.calls = []

    async def request(self, method, endpoint, params=None, json_body=None):
        self.calls.append((method, endpoint, dict(params or {})))
        if endpoint not in self.routes:
            raise ExternalApiError(f"Hillebrand API error: 404 - no route {endpoint}", 404, "")

        response = self.routes[endpoint]
        if callable(response):
            response = response(params or {})
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, endpoint):
        return [c for c in self.calls if c[1] == endpoint]


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "logistics.db"
    init_logistics_db(path)
    return path


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2025, 3, 14, 9, 30, 0)


@pytest.fixture
def make_client():
    def _make(routes=None, max_pages: int = 100):
        return FakeHBClient(routes, max_pages=max_pages)
    return _make
