"""Cart package: models, store, persistence, pricing and the synchronizer."""
from .errors import (
    CartServiceError,
    CartTransportError,
    CartTimeoutError,
    CartRejectedError,
    InvalidCartResponseError,
    NotAuthenticatedError,
    StorageQuotaExceeded,
)
from .models import ProductSnapshot, CartLine, Cart, CartSummary
from .store import CartStore
from .storage import StorageKeys, InMemoryStorage, RedisStorage, get_redis_storage
from .persistence import CartPersistence
from .pricing import PriceReconciler, CheckoutCheck, check_checkout, has_unaccepted_price_changes
from .identity import IdentityProvider, SessionIdentity
from .client import RemoteCartClient
from .service import CartSynchronizer, is_canonical_product_id

__all__ = [
    "CartServiceError",
    "CartTransportError",
    "CartTimeoutError",
    "CartRejectedError",
    "InvalidCartResponseError",
    "NotAuthenticatedError",
    "StorageQuotaExceeded",
    "ProductSnapshot",
    "CartLine",
    "Cart",
    "CartSummary",
    "CartStore",
    "StorageKeys",
    "InMemoryStorage",
    "RedisStorage",
    "get_redis_storage",
    "CartPersistence",
    "PriceReconciler",
    "CheckoutCheck",
    "check_checkout",
    "has_unaccepted_price_changes",
    "IdentityProvider",
    "SessionIdentity",
    "RemoteCartClient",
    "CartSynchronizer",
    "is_canonical_product_id",
]
