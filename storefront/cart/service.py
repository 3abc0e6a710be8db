"""
Cart synchronizer.

Routes every cart mutation either to the remote cart service (signed-in
user with a bearer token, or guest identified by the X-Session-ID header)
or to local state (guest lines whose product id the service cannot parse),
then keeps the CartStore and device storage consistent with the outcome.

Commit rules:
- success: replace the store's cart, then save it to storage
- failure: store untouched, error re-raised to the caller
- quantity <= 0 on update is a remove, decided before any network call
"""
import random
import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from storefront.config import SyncSettings
from storefront.logging import get_logger, sanitize_id_for_logging
from .client import SESSION_HEADER, RemoteCartClient
from .errors import CartServiceError, NotAuthenticatedError
from .identity import IdentityProvider
from .models import Cart, CartLine, CartSummary, ProductSnapshot, utc_now_iso
from .persistence import CartPersistence
from .pricing import CheckoutCheck, PriceReconciler, check_checkout
from .storage import StoragePort
from .store import CartStore, Listener, Unsubscribe
from .transform import cart_from_response, unwrap_cart

logger = get_logger(__name__)

# Ids the remote storage layer can parse (24 hex chars)
CANONICAL_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def is_canonical_product_id(product_id: Any) -> bool:
    return isinstance(product_id, str) and bool(CANONICAL_ID_PATTERN.match(product_id))


def generate_local_line_id() -> str:
    return f"local-{int(time.time() * 1000)}-{round(random.random() * 100000)}"


class CartSynchronizer:
    """
    Keeps the cart in sync across store, device storage and remote service.

    Use `await CartSynchronizer.create(...)`: construction has async
    startup work (session id, oversized-storage check, initial load).
    """

    def __init__(
        self,
        identity: IdentityProvider,
        storage: StoragePort,
        client: Optional[RemoteCartClient] = None,
        settings: Optional[SyncSettings] = None,
        store: Optional[CartStore] = None,
    ):
        self.settings = settings or SyncSettings()
        self.identity = identity
        self.persistence = CartPersistence(storage, self.settings)
        self.client = client or RemoteCartClient(self.settings)
        self.store = store or CartStore()
        self.pricing = PriceReconciler()
        self.session_id = ""

        # Issue-order sequence numbers, used when stale responses are dropped
        self._issued = 0
        self._last_committed = 0

    @classmethod
    async def create(
        cls,
        identity: IdentityProvider,
        storage: StoragePort,
        client: Optional[RemoteCartClient] = None,
        settings: Optional[SyncSettings] = None,
    ) -> "CartSynchronizer":
        sync = cls(identity, storage, client=client, settings=settings)
        await sync.start()
        return sync

    async def start(self) -> None:
        self.session_id = await self.persistence.load_or_create_session_id()
        # Oversized leftovers go before anything tries to load them
        await self.persistence.clear_if_oversized()
        await self._load(save=False)

    async def aclose(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _auth_headers(self, with_session: bool = False) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.identity.get_token()}"}
        if with_session:
            headers[SESSION_HEADER] = self.session_id
        return headers

    def _guest_headers(self) -> Dict[str, str]:
        return {SESSION_HEADER: self.session_id}

    def _issue(self) -> int:
        self._issued += 1
        return self._issued

    async def _commit(self, cart: Cart, seq: int, persist: bool = True) -> Cart:
        if self.settings.drop_stale_responses and seq < self._last_committed:
            logger.warning(f"Dropping stale cart response #{seq} (already at #{self._last_committed})")
            return self.store.get_cart()

        self._last_committed = max(self._last_committed, seq)
        self.store.replace_cart(cart)
        if persist:
            await self.persistence.save(cart)
        return cart

    async def _apply_remote(
        self,
        action: str,
        seq: int,
        request: Awaitable[Any],
        finish: Optional[Callable[[Cart], Cart]] = None,
    ) -> Cart:
        try:
            response = await request
            cart = cart_from_response(response)
        except CartServiceError as e:
            logger.error(f"{action} failed: {e}")
            raise

        if finish is not None:
            cart = finish(cart)
        logger.debug(f"{action} ok: {len(cart.items)} lines")
        return await self._commit(cart, seq)

    async def _load(self, save: bool) -> None:
        user_id = self.identity.get_current_user_id()
        if user_id:
            try:
                response = await self.client.fetch_cart(self._auth_headers())
                cart = cart_from_response(response)
            except CartServiceError as e:
                logger.error(f"Failed to load cart from server for user {sanitize_id_for_logging(user_id)}: {e}")
                await self._load_from_storage()
                return
            await self._commit(cart, self._issue(), persist=save)
        else:
            await self._load_from_storage()

    async def _load_from_storage(self) -> None:
        saved = await self.persistence.load()
        if saved is not None:
            await self._commit(saved, self._issue(), persist=False)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_cart(self) -> Cart:
        return self.store.get_cart()

    def get_cart_summary(self) -> CartSummary:
        return CartSummary.from_cart(self.store.get_cart())

    def get_cart_item_count(self) -> int:
        return len(self.store.get_cart().items)

    def check_checkout(self) -> CheckoutCheck:
        return check_checkout(self.store.get_cart())

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self.store.subscribe(listener)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def reload_cart(self) -> Cart:
        """Re-fetch from the server (falls back to storage). Recovery path for staleness."""
        await self._load(save=True)
        return self.store.get_cart()

    async def add_to_cart(
        self,
        product_id: str,
        quantity: int = 1,
        price: Any = 0,
        product: Optional[ProductSnapshot] = None,
    ) -> Cart:
        if not product_id or not isinstance(product_id, str):
            raise ValueError("product_id must be a non-empty string")
        if not isinstance(quantity, int) or quantity < 1:
            raise ValueError("quantity must be a positive integer")

        user_id = self.identity.get_current_user_id()
        seq = self._issue()

        if not user_id and not is_canonical_product_id(product_id):
            # The service cannot parse demo/seed ids; keep these lines local
            cart = self.store.get_cart().copy(updated_at=utc_now_iso())
            existing = cart.find_product(product_id)
            if existing:
                existing.quantity += quantity
            else:
                cart.items.append(
                    CartLine(
                        id=generate_local_line_id(),
                        product_id=product_id,
                        quantity=quantity,
                        price=price,
                        product=product,
                    )
                )
            logger.info(f"Added {quantity} x {product_id} to local guest cart")
            return await self._commit(cart, seq)

        if user_id:
            headers = self._auth_headers(with_session=True)
        else:
            headers = self._guest_headers()

        return await self._apply_remote(
            "Add to cart",
            seq,
            self.client.add_line(product_id, quantity, headers),
        )

    async def remove_from_cart(self, line_id: str) -> Cart:
        seq = self._issue()
        if self.identity.get_current_user_id():
            return await self._apply_remote(
                "Remove from cart",
                seq,
                self.client.remove_line(line_id, self._auth_headers()),
            )

        current = self.store.get_cart()
        cart = current.copy(
            items=[line for line in current.items if line.id != line_id],
            updated_at=utc_now_iso(),
        )
        return await self._commit(cart, seq)

    async def update_quantity(self, line_id: str, quantity: int) -> Cart:
        if quantity <= 0:
            return await self.remove_from_cart(line_id)

        seq = self._issue()
        if self.identity.get_current_user_id():
            return await self._apply_remote(
                "Update quantity",
                seq,
                self.client.update_quantity(line_id, quantity, self._auth_headers()),
            )

        cart = self.store.get_cart().copy(updated_at=utc_now_iso())
        line = cart.find_line(line_id)
        if line is None:
            logger.warning(f"Item not found in local cart: {line_id}")
            return self.store.get_cart()

        line.quantity = quantity
        return await self._commit(cart, seq)

    async def merge_cart_after_login(self, user_id: str) -> Cart:
        """
        Hand the pre-login lines to the server in one request.

        The server owns merge semantics; its response is committed as is.
        """
        local = self.store.get_cart()
        logger.info(
            f"Merging {len(local.items)} local lines into cart of user {sanitize_id_for_logging(user_id)}"
        )
        return await self._apply_remote(
            "Merge cart",
            self._issue(),
            self.client.merge([line.to_wire() for line in local.items], self._auth_headers()),
        )

    async def _resolve_price(self, line_id: str, accepted: bool) -> Cart:
        if not self.identity.get_current_user_id():
            raise NotAuthenticatedError()

        return await self._apply_remote(
            "Accept price change" if accepted else "Reject price change",
            self._issue(),
            self.client.price_acceptance(line_id, accepted, self._auth_headers()),
            finish=lambda cart: self.pricing.resolve(cart, line_id, accepted),
        )

    async def accept_price_change(self, line_id: str) -> Cart:
        return await self._resolve_price(line_id, True)

    async def reject_price_change(self, line_id: str) -> Cart:
        return await self._resolve_price(line_id, False)

    async def clear_cart(self) -> Cart:
        user_id = self.identity.get_current_user_id()
        seq = self._issue()
        cart = Cart.empty(user_id)

        if user_id:
            try:
                response = await self.client.clear(self._auth_headers())
            except CartServiceError as e:
                logger.error(f"Clear cart failed: {e}")
                raise
            # Some responses are a bare acknowledgement without a cart
            wire = unwrap_cart(response)
            if isinstance(wire, dict) and wire.get("items"):
                cart = cart_from_response(wire)

        committed = await self._commit(cart, seq, persist=False)
        await self.persistence.clear()
        return committed

    async def reset_after_logout(self) -> Cart:
        """Forget the local cache only; the server cart is kept for next login."""
        cart = Cart.empty()
        await self._commit(cart, self._issue(), persist=False)
        await self.persistence.clear()
        self.pricing.forget()
        return cart
