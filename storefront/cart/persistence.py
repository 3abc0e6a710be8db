"""
Cart persistence on device-local storage.

Best-effort cache: a guest cart lives only here, an authenticated cart
is cached here and the server copy stays authoritative. Storage and
parse failures are logged and absorbed; callers never see them.
"""
import json
import random
import time
from typing import Optional

from storefront.config import SyncSettings
from storefront.logging import get_logger
from .errors import StorageQuotaExceeded
from .models import Cart
from .storage import StorageKeys, StoragePort

logger = get_logger(__name__)


def size_of(payload: str) -> float:
    """UTF-8 size of a serialized payload, in KB."""
    return len(payload.encode("utf-8")) / 1024


def generate_session_id() -> str:
    """Guest session token: session-<ms timestamp>-<random>."""
    return f"session-{int(time.time() * 1000)}-{random.random()}"


class CartPersistence:
    """Reads and writes the reduced cart snapshot under the `cart` key."""

    def __init__(self, storage: StoragePort, settings: Optional[SyncSettings] = None):
        self.storage = storage
        self.settings = settings or SyncSettings()

    async def save(self, cart: Cart) -> None:
        """Write a reduced snapshot; degrade to the first lines when it is too big."""
        try:
            serialized = json.dumps(cart.to_dict())
            size_kb = size_of(serialized)

            if size_kb > self.settings.max_saved_cart_kb:
                keep = self.settings.overflow_keep_lines
                logger.warning(
                    f"Cart data too large ({size_kb:.2f}KB). Keeping only the first {keep} lines."
                )
                await self.storage.remove(StorageKeys.CART)
                minimal = json.dumps(cart.to_dict(items=cart.items[:keep]))
                await self.storage.set(StorageKeys.CART, minimal)
                return

            await self.storage.set(StorageKeys.CART, serialized)
        except StorageQuotaExceeded as e:
            logger.error(f"Storage quota exceeded, cart will not persist: {e}")
            await self._reset()
        except Exception:
            logger.exception("Error saving cart to storage")

    async def load(self) -> Optional[Cart]:
        """Saved cart, or None when nothing usable is stored."""
        try:
            saved = await self.storage.get(StorageKeys.CART)
        except Exception:
            logger.exception("Failed to read cart from storage")
            return None

        if not saved:
            return None

        try:
            return Cart.from_dict(json.loads(saved))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError, OverflowError) as e:
            logger.error(f"Failed to load cart from storage: {e}")
            return None

    async def clear(self) -> None:
        try:
            await self.storage.remove(StorageKeys.CART)
        except Exception:
            logger.exception("Failed to remove cart from storage")

    async def clear_if_oversized(self, limit_kb: Optional[float] = None) -> bool:
        """
        Drop a stored cart that is already over the startup limit.

        Older writes could leave multi-hundred-KB entries behind; those
        are removed before anything tries to load them.
        """
        limit = self.settings.startup_cart_limit_kb if limit_kb is None else limit_kb
        try:
            stored = await self.storage.get(StorageKeys.CART)
            if not stored:
                return False
            size_kb = size_of(stored)
            if size_kb > limit:
                logger.warning(f"Cart data is large ({size_kb:.2f}KB). Clearing to prevent quota errors.")
                await self.storage.remove(StorageKeys.CART)
                return True
        except Exception:
            logger.exception("Could not check storage size")
        return False

    async def load_or_create_session_id(self) -> str:
        """Stored guest session id, generating and storing one if missing."""
        session_id = None
        try:
            session_id = await self.storage.get(StorageKeys.SESSION_ID)
        except Exception:
            logger.exception("Failed to read session id from storage")

        if session_id:
            return session_id

        session_id = generate_session_id()
        try:
            await self.storage.set(StorageKeys.SESSION_ID, session_id)
        except StorageQuotaExceeded as e:
            logger.error(f"Storage quota exceeded, session id kept in memory only: {e}")
            await self._reset()
        except Exception:
            logger.exception("Failed to store session id")
        return session_id

    async def _reset(self) -> None:
        """Full reset after a quota error: no half-written values left behind."""
        try:
            await self.storage.remove(StorageKeys.CART)
            await self.storage.remove(StorageKeys.SESSION_ID)
            logger.info("Cleared cart storage after quota error")
        except Exception:
            logger.exception("Failed to clear storage after quota error")
