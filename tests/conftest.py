"""Pytest configuration and fixtures"""
import os
from dataclasses import replace
from typing import Callable, List, Tuple

import httpx
import pytest

# Set test environment variables before storefront modules read them
os.environ.setdefault("CART_API_URL", "http://testserver/api")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from storefront.cart import InMemoryStorage, RemoteCartClient, SessionIdentity  # noqa: E402
from storefront.config import SyncSettings  # noqa: E402
from storefront.mock_server import create_app  # noqa: E402

TEST_API_URL = "http://testserver/api"
CANONICAL_ID = "64b7f0c2a1e4d3b2c1a09f8e"


@pytest.fixture
def settings():
    """Sync settings with zero retry delays"""
    return SyncSettings(
        api_url=TEST_API_URL,
        add_retry_delay=0,
        update_retry_delay=0,
        remove_retry_delay=0,
    )


@pytest.fixture
def storage():
    """Empty in-memory device storage"""
    return InMemoryStorage()


@pytest.fixture
def guest():
    """Identity with nobody signed in"""
    return SessionIdentity()


@pytest.fixture
def mock_app():
    """Fresh mock cart server"""
    return create_app()


@pytest.fixture
def mock_state(mock_app):
    return mock_app.state.mock


@pytest.fixture
def user(mock_state):
    """Signed-in identity with a token the mock server accepts"""
    token = mock_state.issue_token("1")
    return SessionIdentity(user_id="1", token=token)


@pytest.fixture
def product(mock_state):
    """Product priced at 10"""
    return mock_state.add_product("Widget", "10", slug="widget", images=["https://cdn.example.com/w.jpg"])


@pytest.fixture
def remote_client(mock_app, settings):
    """RemoteCartClient talking to the mock server in-process"""
    http_client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=mock_app),
        base_url=TEST_API_URL,
    )
    return RemoteCartClient(settings, http_client=http_client)


@pytest.fixture
def recording_client(settings) -> Callable[..., Tuple[RemoteCartClient, List[httpx.Request]]]:
    """
    Build a RemoteCartClient over httpx.MockTransport.

    Returns (client, requests) where requests collects every request sent.
    """
    def _make(handler=None, **overrides):
        requests: List[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if handler is None:
                return httpx.Response(200, json={"cart": {"_id": "c1", "items": []}})
            return handler(request)

        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(_handle),
            base_url=TEST_API_URL,
        )
        client_settings = replace(settings, **overrides)
        return RemoteCartClient(client_settings, http_client=http_client), requests

    return _make


def wire_line(line_id: str, product_id: str, quantity: int, price, **extra) -> dict:
    """Wire cart line with a nested product document"""
    line = {
        "_id": line_id,
        "product": {"_id": product_id, "name": "Widget", "price": price, "images": [], "slug": "widget"},
        "quantity": quantity,
        "price": price,
        "priceChanged": False,
    }
    line.update(extra)
    return line
