"""Cart core exceptions."""
from typing import Any


class CartServiceError(Exception):
    """Error talking to the remote cart service."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        retryable: bool = False,
        raw_error: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable
        self.raw_error = raw_error


class CartTransportError(CartServiceError):
    """Network-level failure (connection refused, reset, DNS...)."""

    def __init__(self, message: str = "Cart service unreachable", raw_error: Any = None) -> None:
        super().__init__(message, code="TRANSPORT", retryable=True, raw_error=raw_error)


class CartTimeoutError(CartTransportError):
    """Request exceeded its deadline."""

    def __init__(self, message: str = "Cart service timeout", raw_error: Any = None) -> None:
        super().__init__(message, raw_error=raw_error)
        self.code = "TIMEOUT"


class CartRejectedError(CartServiceError):
    """Remote service answered with an HTTP error status."""

    def __init__(self, status_code: int, detail: str = "", raw_error: Any = None) -> None:
        message = f"Cart service returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message,
            code=f"HTTP_{status_code}",
            retryable=status_code >= 500,
            raw_error=raw_error,
        )
        self.status_code = status_code
        self.detail = detail


class InvalidCartResponseError(CartServiceError):
    """Response body could not be turned into a cart."""

    def __init__(self, message: str = "Invalid cart response from server") -> None:
        super().__init__(message, code="INVALID_RESPONSE")


class NotAuthenticatedError(CartServiceError):
    """Operation needs a signed-in user."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message, code="NOT_AUTHENTICATED")


class StorageQuotaExceeded(Exception):
    """Storage backend refused a write for lack of space."""
