"""
Price reconciliation.

A line's `price_changed` / `previous_price` come from the remote cart
service; nothing here recomputes prices. This module surfaces flagged
lines, records the customer's decision, and gates checkout.

Rejecting a new price removes the line: the old price is no longer valid
for fulfillment, so it cannot be kept.
"""
from dataclasses import dataclass, field
from typing import Dict, List

from storefront.logging import get_logger
from .models import Cart, CartLine

logger = get_logger(__name__)

ERROR_EMPTY_CART = "Cart is empty"
ERROR_PRICE_CHANGED = "Prices changed for some items. Accept or remove them before checkout."


def price_changed_lines(cart: Cart) -> List[CartLine]:
    return [line for line in cart.items if line.price_changed]


def has_unaccepted_price_changes(cart: Cart) -> bool:
    return any(line.price_changed for line in cart.items)


@dataclass
class CheckoutCheck:
    """Checkout gate result. Blocking reasons are user-facing messages."""
    ok: bool
    errors: List[str] = field(default_factory=list)
    price_changed_items: List[CartLine] = field(default_factory=list)


def check_checkout(cart: Cart) -> CheckoutCheck:
    """Validate that checkout may proceed; never raises."""
    errors = []
    if cart.is_empty:
        errors.append(ERROR_EMPTY_CART)

    changed = price_changed_lines(cart)
    if changed:
        errors.append(ERROR_PRICE_CHANGED)

    return CheckoutCheck(ok=not errors, errors=errors, price_changed_items=changed)


class PriceReconciler:
    """Keeps the accept/reject decisions made for flagged lines."""

    def __init__(self):
        self.decisions: Dict[str, bool] = {}

    def record(self, line_id: str, accepted: bool) -> None:
        self.decisions[line_id] = accepted
        logger.info(f"Price change {'accepted' if accepted else 'rejected'} for line {line_id}")

    def resolve(self, cart: Cart, line_id: str, accepted: bool) -> Cart:
        """
        Cart to commit after the server answered a price decision.

        A rejected line must be gone even if the response still lists it.
        """
        self.record(line_id, accepted)
        if accepted or cart.find_line(line_id) is None:
            return cart
        logger.warning(f"Server kept rejected line {line_id}; dropping it locally")
        return cart.copy(items=[line for line in cart.items if line.id != line_id])

    def decision_for(self, line_id: str) -> bool | None:
        return self.decisions.get(line_id)

    def forget(self) -> None:
        self.decisions.clear()
