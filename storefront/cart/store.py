"""In-memory cart state with explicit publish/subscribe."""
from typing import Callable, List, Optional

from storefront.logging import get_logger
from .models import Cart

logger = get_logger(__name__)

Listener = Callable[[Cart], None]
Unsubscribe = Callable[[], None]


class CartStore:
    """
    Single owner of the current Cart.

    The cart is only ever swapped wholesale via replace_cart; every swap
    bumps `version` and is pushed to listeners synchronously, in the
    order they subscribed.
    """

    def __init__(self, initial: Optional[Cart] = None):
        self._cart = initial or Cart.empty()
        self._listeners: List[Listener] = []
        self.version = 0

    def get_cart(self) -> Cart:
        return self._cart

    def replace_cart(self, cart: Cart) -> None:
        self._cart = cart
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(cart)
            except Exception:
                logger.exception("Cart listener failed")

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
