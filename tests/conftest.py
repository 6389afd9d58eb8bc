import os

# Keep tests off any real MongoDB; sessions stay in memory
os.environ.pop("DATABASE_URL", None)

import httpx
import pytest

from backend_client import BackendClient
from schemas import CartItem


class FakeUpstream:
    """Routes (method, path) to canned JSON and records every request."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if isinstance(route, Exception):
            raise route
        status, body = route
        return httpx.Response(status, json=body)

    def client(self, token=None) -> BackendClient:
        return BackendClient("http://upstream.test", token=token, transport=httpx.MockTransport(self.handler))

    def paths(self):
        return [(r.method, r.url.path) for r in self.calls]


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def rose():
    return CartItem(id="p1", name="Red Roses", price=100, image="/roses.jpg")


@pytest.fixture
def cake():
    return CartItem(id="p2", name="Chocolate Cake", price=50)
