"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from storefront.logging import get_logger
from storefront.services.money import (
    to_decimal,
    to_optional_decimal,
    to_wire,
    round_money,
    multiply,
    percent,
)

# Summary rules
TAX_PERCENT = Decimal("10")
FREE_SHIPPING_OVER = Decimal("100")
SHIPPING_FEE = Decimal("10")

logger = get_logger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProductSnapshot:
    """Denormalized product view kept on a cart line."""
    id: str
    name: str = ""
    image: str = ""
    current_price: Decimal = Decimal("0")
    slug: str = ""

    def __post_init__(self):
        self.current_price = to_decimal(self.current_price)

    def to_dict(self, include_image: bool = False) -> dict:
        """Convert to dictionary. Storage copies leave the image out."""
        data = {
            "id": self.id,
            "name": self.name,
            "currentPrice": str(self.current_price),
            "slug": self.slug,
        }
        if include_image:
            data["image"] = self.image
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        """Create from dictionary."""
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            image=data.get("image") or "",
            current_price=to_decimal(data.get("currentPrice")),
            slug=data.get("slug") or "",
        )


@dataclass
class CartLine:
    """One product + quantity + price entry of a cart."""
    id: str
    product_id: str
    quantity: int
    price: Decimal
    price_changed: bool = False
    previous_price: Optional[Decimal] = None
    product: Optional[ProductSnapshot] = None

    def __post_init__(self):
        self.price = to_decimal(self.price)
        self.previous_price = to_optional_decimal(self.previous_price)

    @property
    def total_price(self) -> Decimal:
        """Price for all units."""
        return round_money(multiply(self.price, self.quantity))

    def to_dict(self) -> dict:
        """Reduced form written to device storage."""
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": str(self.price),
            "priceChanged": self.price_changed,
            "previousPrice": str(self.previous_price) if self.previous_price is not None else None,
            "product": self.product.to_dict() if self.product else None,
        }

    def to_wire(self) -> dict:
        """Full line as JSON for the remote service (merge payload)."""
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": to_wire(self.price),
            "priceChanged": self.price_changed,
            "previousPrice": to_wire(self.previous_price) if self.previous_price is not None else None,
            "product": self.product.to_dict(include_image=True) if self.product else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        """Create from dictionary."""
        product = data.get("product")
        return cls(
            id=str(data["id"]),
            product_id=str(data["productId"]),
            quantity=int(data["quantity"]),
            price=to_decimal(data.get("price")),
            price_changed=bool(data.get("priceChanged", False)),
            previous_price=to_optional_decimal(data.get("previousPrice")),
            product=ProductSnapshot.from_dict(product) if product else None,
        )


@dataclass
class Cart:
    """Shopping cart: anonymous (no user_id) or owned by one user."""
    id: str = ""
    user_id: Optional[str] = None
    items: List[CartLine] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        now = utc_now_iso()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now

    @classmethod
    def empty(cls, user_id: Optional[str] = None) -> "Cart":
        return cls(id="", user_id=user_id or None, items=[])

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_line(self, line_id: str) -> Optional[CartLine]:
        return next((line for line in self.items if line.id == line_id), None)

    def find_product(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self.items if line.product_id == product_id), None)

    def copy(self, **changes) -> "Cart":
        """
        New Cart with fresh line objects.

        The store hands out its current Cart to every reader, so local
        mutations always work on a copy.
        """
        items = changes.pop("items", None)
        if items is None:
            items = [replace(line) for line in self.items]
        return replace(self, items=items, **changes)

    def to_dict(self, items: Optional[List[CartLine]] = None) -> dict:
        """Reduced form for device storage."""
        lines = self.items if items is None else items
        return {
            "id": self.id,
            "userId": self.user_id,
            "items": [line.to_dict() for line in lines],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """Create from dictionary."""
        items = []
        for item in data.get("items") or []:
            line = CartLine.from_dict(item)
            if line.quantity < 1:
                logger.warning(f"Dropping stored cart line {line.id} with quantity {line.quantity}")
                continue
            items.append(line)
        return cls(
            id=data.get("id") or "",
            user_id=data.get("userId") or None,
            items=items,
            created_at=data.get("createdAt") or "",
            updated_at=data.get("updatedAt") or "",
        )


@dataclass
class CartSummary:
    """Derived totals. Recomputed on every read, never stored."""
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    item_count: int
    price_changed_items: List[CartLine]

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartSummary":
        subtotal = round_money(sum((multiply(line.price, line.quantity) for line in cart.items), Decimal("0")))
        tax = round_money(percent(subtotal, TAX_PERCENT))

        if subtotal <= 0 or subtotal > FREE_SHIPPING_OVER:
            shipping = Decimal("0.00")
        else:
            shipping = round_money(SHIPPING_FEE)

        return cls(
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            total=round_money(subtotal + tax + shipping),
            item_count=len(cart.items),
            price_changed_items=[line for line in cart.items if line.price_changed],
        )
