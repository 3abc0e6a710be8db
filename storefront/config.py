"""Cart sync configuration read from the environment."""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Remote cart service
CART_API_URL = os.environ.get("CART_API_URL", "http://localhost:5000/api")
CART_REQUEST_TIMEOUT = float(os.environ.get("CART_REQUEST_TIMEOUT", "10"))

# Retry policy. True keeps retrying 4xx responses like any other failure.
CART_RETRY_CLIENT_ERRORS = _env_bool("CART_RETRY_CLIENT_ERRORS", True)

# Concurrency policy. False = last successful response wins.
CART_DROP_STALE_RESPONSES = _env_bool("CART_DROP_STALE_RESPONSES", False)

# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
CART_STORAGE_PREFIX = os.environ.get("CART_STORAGE_PREFIX", "storefront:")


@dataclass(frozen=True)
class SyncSettings:
    """Knobs for CartSynchronizer and the persistence adapter."""
    api_url: str = CART_API_URL
    timeout: float = CART_REQUEST_TIMEOUT

    add_retries: int = 2
    add_retry_delay: float = 1.0
    update_retries: int = 2
    update_retry_delay: float = 1.0
    remove_retries: int = 1
    remove_retry_delay: float = 0.5

    retry_client_errors: bool = CART_RETRY_CLIENT_ERRORS
    drop_stale_responses: bool = CART_DROP_STALE_RESPONSES

    # Storage thresholds (KB)
    max_saved_cart_kb: float = 1024
    startup_cart_limit_kb: float = 500
    overflow_keep_lines: int = 5

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Re-read the environment (module constants are fixed at import)."""
        return cls(
            api_url=os.environ.get("CART_API_URL", CART_API_URL),
            timeout=float(os.environ.get("CART_REQUEST_TIMEOUT", CART_REQUEST_TIMEOUT)),
            retry_client_errors=_env_bool("CART_RETRY_CLIENT_ERRORS", CART_RETRY_CLIENT_ERRORS),
            drop_stale_responses=_env_bool("CART_DROP_STALE_RESPONSES", CART_DROP_STALE_RESPONSES),
        )
