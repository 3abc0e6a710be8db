"""
Tests for RemoteCartClient transport, retries and error mapping
"""

import json

import httpx
import pytest

from storefront.cart import (
    CartRejectedError,
    CartTimeoutError,
    CartTransportError,
    InvalidCartResponseError,
)

from conftest import CANONICAL_ID


def _status(code: int, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(code, json=body if body is not None else {"message": "nope"})
    return handler


class TestRequests:

    @pytest.mark.asyncio
    async def test_add_posts_product_and_quantity(self, recording_client):
        client, requests = recording_client()

        await client.add_line(CANONICAL_ID, 2, {"X-Session-ID": "session-1-0.1"})

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/cart/add"
        assert request.headers["X-Session-ID"] == "session-1-0.1"
        assert json.loads(request.content) == {"productId": CANONICAL_ID, "quantity": 2}

    @pytest.mark.asyncio
    async def test_endpoint_paths(self, recording_client):
        client, requests = recording_client()
        headers = {"Authorization": "Bearer t"}

        await client.fetch_cart(headers)
        await client.remove_line("l1", headers)
        await client.update_quantity("l1", 3, headers)
        await client.merge([{"productId": "p1", "quantity": 1}], headers)
        await client.price_acceptance("l1", False, headers)
        await client.clear(headers)

        assert [(r.method, r.url.path) for r in requests] == [
            ("GET", "/api/cart"),
            ("DELETE", "/api/cart/l1"),
            ("PUT", "/api/cart/l1"),
            ("POST", "/api/cart/merge"),
            ("POST", "/api/cart/price-acceptance"),
            ("DELETE", "/api/cart"),
        ]
        assert json.loads(requests[4].content) == {"itemId": "l1", "accepted": False}

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, recording_client):
        client, _ = recording_client(lambda request: httpx.Response(204))
        assert await client.clear({}) is None

    @pytest.mark.asyncio
    async def test_non_json_body(self, recording_client):
        client, _ = recording_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(InvalidCartResponseError):
            await client.fetch_cart({})


class TestRetries:

    @pytest.mark.asyncio
    async def test_add_retries_twice_on_server_error(self, recording_client):
        client, requests = recording_client(_status(503))

        with pytest.raises(CartRejectedError) as exc_info:
            await client.add_line(CANONICAL_ID, 1, {})

        assert len(requests) == 3
        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_client_errors_retried_by_default(self, recording_client):
        """4xx goes through the same retry budget unless the policy is tightened."""
        client, requests = recording_client(_status(400, {"detail": "Invalid product id"}))

        with pytest.raises(CartRejectedError) as exc_info:
            await client.update_quantity("l1", 2, {})

        assert len(requests) == 3
        assert exc_info.value.detail == "Invalid product id"

    @pytest.mark.asyncio
    async def test_client_errors_not_retried_when_tightened(self, recording_client):
        client, requests = recording_client(_status(400), retry_client_errors=False)

        with pytest.raises(CartRejectedError):
            await client.add_line(CANONICAL_ID, 1, {})

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_remove_retries_once(self, recording_client):
        client, requests = recording_client(_status(500))

        with pytest.raises(CartRejectedError):
            await client.remove_line("l1", {})

        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, recording_client):
        attempts = []

        def flaky(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"cart": {"_id": "c1", "items": []}})

        client, _ = recording_client(flaky)

        response = await client.add_line(CANONICAL_ID, 1, {})
        assert response["cart"]["_id"] == "c1"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_timeout_mapped_after_retries(self, recording_client):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, requests = recording_client(slow)

        with pytest.raises(CartTimeoutError) as exc_info:
            await client.add_line(CANONICAL_ID, 1, {})

        assert len(requests) == 3
        assert isinstance(exc_info.value, CartTransportError)
        assert exc_info.value.code == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_fetch_is_not_retried(self, recording_client):
        client, requests = recording_client(_status(502))

        with pytest.raises(CartRejectedError):
            await client.fetch_cart({})

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_non_json_body_retried_like_any_failure(self, recording_client):
        client, requests = recording_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(InvalidCartResponseError):
            await client.add_line(CANONICAL_ID, 1, {})

        assert len(requests) == 3

    @pytest.mark.asyncio
    async def test_non_json_body_not_retried_when_tightened(self, recording_client):
        client, requests = recording_client(
            lambda request: httpx.Response(200, text="<html>"),
            retry_client_errors=False,
        )

        with pytest.raises(InvalidCartResponseError):
            await client.update_quantity("l1", 2, {})

        assert len(requests) == 1
