"""Wire cart -> Cart.

The remote service wraps carts inconsistently ({"cart": {...}} or the bare
cart) and uses document-style ids (`_id`, nested `product`, `user`).
"""
from typing import Any, Optional

from storefront.logging import get_logger
from storefront.services.money import to_decimal, to_optional_decimal
from .errors import InvalidCartResponseError
from .models import Cart, CartLine, ProductSnapshot

logger = get_logger(__name__)


def unwrap_cart(response: Any) -> Any:
    """`resp["cart"]` when the payload is wrapped, else the payload itself."""
    if isinstance(response, dict) and response.get("cart") is not None:
        return response["cart"]
    return response


def product_image(product: Optional[dict]) -> str:
    """
    Image fallback chain: `image` string, then the first `images`
    entry (string or {url}), else "".
    """
    if not product:
        return ""
    image = product.get("image")
    if image and isinstance(image, str):
        return image
    images = product.get("images")
    if isinstance(images, list) and images:
        first = images[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and first.get("url"):
            return str(first["url"])
    return ""


def _user_id(wire: dict) -> Optional[str]:
    user = wire.get("user")
    if isinstance(user, dict):
        user = user.get("_id") or user.get("id")
    user = user or wire.get("userId")
    return str(user) if user else None


def _product_snapshot(product: Any) -> Optional[ProductSnapshot]:
    if not isinstance(product, dict):
        return None
    product_id = product.get("_id") or product.get("id") or ""
    return ProductSnapshot(
        id=str(product_id),
        name=product.get("name") or "",
        image=product_image(product),
        current_price=to_decimal(product.get("price", product.get("currentPrice"))),
        slug=product.get("slug") or "",
    )


def _line(item: dict) -> Optional[CartLine]:
    product = item.get("product")
    nested = product if isinstance(product, dict) else {}

    product_id = nested.get("_id") or nested.get("id") or item.get("productId")
    if product_id is None and isinstance(product, str):
        product_id = product
    line_id = item.get("_id") or item.get("id") or nested.get("_id") or ""

    try:
        quantity = int(item.get("quantity") or 0)
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidCartResponseError(f"Cart line {line_id} has invalid quantity {item.get('quantity')!r}") from e
    if quantity <= 0:
        logger.warning(f"Dropping cart line {line_id} with quantity {quantity}")
        return None

    previous = item.get("originalPrice", item.get("previousPrice"))
    return CartLine(
        id=str(line_id),
        product_id=str(product_id or ""),
        quantity=quantity,
        price=to_decimal(item.get("price")),
        price_changed=bool(item.get("priceChanged", False)),
        previous_price=to_optional_decimal(previous),
        product=_product_snapshot(nested) if nested else None,
    )


def transform_wire_cart(wire: Any) -> Cart:
    """Canonical Cart from a wire cart document."""
    if not isinstance(wire, dict):
        raise InvalidCartResponseError()

    items = []
    for item in wire.get("items") or []:
        if not isinstance(item, dict):
            raise InvalidCartResponseError("Cart line is not an object")
        line = _line(item)
        if line is not None:
            items.append(line)

    return Cart(
        id=str(wire.get("_id") or wire.get("id") or ""),
        user_id=_user_id(wire),
        items=items,
        created_at=str(wire.get("createdAt") or ""),
        updated_at=str(wire.get("updatedAt") or ""),
    )


def cart_from_response(response: Any) -> Cart:
    """Unwrap then transform."""
    return transform_wire_cart(unwrap_cart(response))
