"""
Remote Cart Service client.

Thin httpx wrapper over the cart endpoints. Each call is one HTTP
operation with a per-attempt timeout; add/update/remove retry on
failure with a fixed delay between attempts (tenacity).
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from storefront.config import SyncSettings
from storefront.logging import get_logger
from .errors import (
    CartRejectedError,
    CartTimeoutError,
    CartTransportError,
    InvalidCartResponseError,
)

logger = get_logger(__name__)

SESSION_HEADER = "X-Session-ID"
NO_RESPONSE_BODY = "No response body"


def _error_detail(response: httpx.Response) -> str:
    """Best human-readable reason from an error response."""
    try:
        data = response.json() if response.content else {}
    except ValueError:
        return response.text[:200] if response.text else NO_RESPONSE_BODY
    if isinstance(data, dict):
        detail = data.get("detail") or data.get("message") or data.get("error")
        if detail:
            return str(detail)[:200]
    return response.text[:200] if response.text else NO_RESPONSE_BODY


class RemoteCartClient:
    """HTTP access to /cart endpoints. Returns decoded JSON bodies (or None)."""

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or SyncSettings()
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily created httpx client bound to the cart API base URL."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_url,
                timeout=self.settings.timeout,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteCartClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, CartTransportError):
            return True
        if isinstance(exc, CartRejectedError):
            # Permissive policy retries 4xx too
            return self.settings.retry_client_errors or exc.retryable
        if isinstance(exc, InvalidCartResponseError):
            # Unparsable body: same as any other failure under the permissive policy
            return self.settings.retry_client_errors
        return False

    async def _send(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        payload: Optional[dict] = None,
    ) -> Any:
        """Single attempt. Maps httpx failures onto cart errors."""
        try:
            response = await self.client.request(
                method,
                path,
                headers=headers,
                json=payload,
                timeout=self.settings.timeout,
            )
        except httpx.TimeoutException as e:
            raise CartTimeoutError(f"{method} {path} timed out after {self.settings.timeout}s", raw_error=e) from e
        except httpx.TransportError as e:
            raise CartTransportError(f"{method} {path} failed: {e}", raw_error=e) from e

        if response.status_code >= 400:
            raise CartRejectedError(response.status_code, _error_detail(response), raw_error=response)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise InvalidCartResponseError(f"Non-JSON response from {method} {path}") from e

    async def _request(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        payload: Optional[dict] = None,
        retries: int = 0,
        retry_delay: float = 0.0,
    ) -> Any:
        if retries <= 0:
            return await self._send(method, path, headers, payload)

        result = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_fixed(retry_delay),
            retry=retry_if_exception(self._should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                result = await self._send(method, path, headers, payload)
        return result

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def fetch_cart(self, headers: Dict[str, str]) -> Any:
        return await self._request("GET", "/cart", headers)

    async def add_line(self, product_id: str, quantity: int, headers: Dict[str, str]) -> Any:
        return await self._request(
            "POST",
            "/cart/add",
            headers,
            {"productId": product_id, "quantity": quantity},
            retries=self.settings.add_retries,
            retry_delay=self.settings.add_retry_delay,
        )

    async def remove_line(self, line_id: str, headers: Dict[str, str]) -> Any:
        return await self._request(
            "DELETE",
            f"/cart/{line_id}",
            headers,
            retries=self.settings.remove_retries,
            retry_delay=self.settings.remove_retry_delay,
        )

    async def update_quantity(self, line_id: str, quantity: int, headers: Dict[str, str]) -> Any:
        return await self._request(
            "PUT",
            f"/cart/{line_id}",
            headers,
            {"quantity": quantity},
            retries=self.settings.update_retries,
            retry_delay=self.settings.update_retry_delay,
        )

    async def merge(self, items: List[dict], headers: Dict[str, str]) -> Any:
        return await self._request("POST", "/cart/merge", headers, {"items": items})

    async def price_acceptance(self, line_id: str, accepted: bool, headers: Dict[str, str]) -> Any:
        return await self._request(
            "POST",
            "/cart/price-acceptance",
            headers,
            {"itemId": line_id, "accepted": accepted},
        )

    async def clear(self, headers: Dict[str, str]) -> Any:
        return await self._request("DELETE", "/cart", headers)
