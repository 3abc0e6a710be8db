"""
Mock Cart API - development and tests only.

In-memory implementation of the remote cart service contract:
- GET    /api/health
- POST   /api/auth/login              -> {token, user}
- POST   /api/auth/register           -> {token, user}
- GET    /api/products
- PUT    /api/products/{id}/price     (reprice; flags cart lines)
- GET    /api/cart
- POST   /api/cart/add
- DELETE /api/cart/{lineId}
- PUT    /api/cart/{lineId}
- POST   /api/cart/merge
- POST   /api/cart/price-acceptance
- DELETE /api/cart

Carts are keyed by the bearer token's user, or by X-Session-ID for guests.
State lives on app.state and disappears with the process.
"""
import re
import secrets
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from storefront.cart.models import utc_now_iso
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.services.money import to_decimal, to_wire

logger = get_logger(__name__)

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

ERROR_UNAUTHORIZED = "Unauthorized"
ERROR_PRODUCT_NOT_FOUND = "Product not found"
ERROR_LINE_NOT_FOUND = "Cart item not found"
ERROR_INVALID_PRODUCT_ID = "Invalid product id"
ERROR_EMAIL_TAKEN = "Email already registered"


def new_object_id() -> str:
    return secrets.token_hex(12)


# ==================== REQUEST MODELS ====================

class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    firstName: str = ""
    lastName: str = ""
    phone: str = ""


class AddToCartRequest(BaseModel):
    productId: str
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    quantity: int


class MergeItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    productId: str
    quantity: int = 1


class MergeCartRequest(BaseModel):
    items: List[MergeItem] = []


class PriceAcceptanceRequest(BaseModel):
    itemId: str
    accepted: bool


class RepriceRequest(BaseModel):
    price: float


# ==================== STATE ====================

SEED_PRODUCTS = [
    ("Classic Tee", "classic-tee", "19.99", ["https://cdn.example.com/tee.jpg"]),
    ("Denim Jacket", "denim-jacket", "89.50", [{"url": "https://cdn.example.com/jacket.jpg"}]),
    ("Canvas Sneakers", "canvas-sneakers", "54", []),
]

SEED_USERS = [
    {"id": "1", "email": "ahmed@example.com", "password": "password123", "firstName": "Ahmed"},
]


class MockState:
    """Everything the mock server knows."""

    def __init__(self, seed: bool = True):
        self.products: Dict[str, dict] = {}
        self.users: List[dict] = []
        self.tokens: Dict[str, str] = {}
        self.carts: Dict[str, dict] = {}

        if seed:
            for name, slug, price, images in SEED_PRODUCTS:
                self.add_product(name, price, slug=slug, images=images)
            self.users = [dict(user) for user in SEED_USERS]

    def add_product(self, name: str, price, slug: str = "", images: Optional[list] = None) -> dict:
        product = {
            "_id": new_object_id(),
            "name": name,
            "price": to_decimal(price),
            "images": images or [],
            "slug": slug or name.lower().replace(" ", "-"),
        }
        self.products[product["_id"]] = product
        return product

    def issue_token(self, user_id: str) -> str:
        token = f"token_{user_id}_{int(time.time() * 1000)}"
        self.tokens[token] = user_id
        return token

    def cart_for(self, owner: "CartOwner") -> dict:
        cart = self.carts.get(owner.key)
        if cart is None:
            now = utc_now_iso()
            cart = {
                "_id": new_object_id(),
                "userId": owner.user_id,
                "sessionId": owner.session_id,
                "items": [],
                "createdAt": now,
                "updatedAt": now,
            }
            self.carts[owner.key] = cart
        return cart

    def serialize_cart(self, cart: dict) -> dict:
        """Wire shape: nested product documents, `_id` ids."""
        items = []
        for line in cart["items"]:
            product = self.products.get(line["productId"])
            wire_line = {
                "_id": line["_id"],
                "quantity": line["quantity"],
                "price": to_wire(line["price"]),
                "priceChanged": line["priceChanged"],
            }
            if line.get("originalPrice") is not None:
                wire_line["originalPrice"] = to_wire(line["originalPrice"])
            if product:
                wire_line["product"] = {
                    "_id": product["_id"],
                    "name": product["name"],
                    "price": to_wire(product["price"]),
                    "images": product["images"],
                    "slug": product["slug"],
                }
            else:
                wire_line["productId"] = line["productId"]
            items.append(wire_line)

        data = {
            "_id": cart["_id"],
            "items": items,
            "createdAt": cart["createdAt"],
            "updatedAt": cart["updatedAt"],
        }
        if cart["userId"]:
            data["user"] = {"_id": cart["userId"]}
        return data


class CartOwner:
    """Resolved caller: a signed-in user or a guest session."""

    def __init__(self, user_id: Optional[str] = None, session_id: Optional[str] = None):
        self.user_id = user_id
        self.session_id = session_id

    @property
    def key(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        return f"session:{self.session_id}"


# ==================== DEPENDENCIES ====================

def get_state(request: Request) -> MockState:
    return request.app.state.mock


def _user_from_authorization(state: MockState, authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or token not in state.tokens:
        raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED)
    return state.tokens[token]


def get_owner(
    state: MockState = Depends(get_state),
    authorization: Optional[str] = Header(default=None),
    x_session_id: Optional[str] = Header(default=None),
) -> CartOwner:
    """Bearer user if present, else the guest session."""
    user_id = _user_from_authorization(state, authorization)
    if user_id:
        return CartOwner(user_id=user_id, session_id=x_session_id)
    if x_session_id:
        return CartOwner(session_id=x_session_id)
    raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED)


def get_user_owner(
    state: MockState = Depends(get_state),
    authorization: Optional[str] = Header(default=None),
) -> CartOwner:
    """Bearer token required."""
    user_id = _user_from_authorization(state, authorization)
    if not user_id:
        raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED)
    return CartOwner(user_id=user_id)


# ==================== HELPERS ====================

def _get_product(state: MockState, product_id: str) -> dict:
    if not OBJECT_ID_PATTERN.match(product_id):
        raise HTTPException(status_code=400, detail=ERROR_INVALID_PRODUCT_ID)
    product = state.products.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail=ERROR_PRODUCT_NOT_FOUND)
    return product


def _find_line(cart: dict, line_id: str) -> dict:
    line = next((line for line in cart["items"] if line["_id"] == line_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail=ERROR_LINE_NOT_FOUND)
    return line


def _add_quantity(cart: dict, product: dict, quantity: int) -> None:
    existing = next((line for line in cart["items"] if line["productId"] == product["_id"]), None)
    if existing:
        existing["quantity"] += quantity
    else:
        cart["items"].append({
            "_id": new_object_id(),
            "productId": product["_id"],
            "quantity": quantity,
            "price": product["price"],
            "priceChanged": False,
            "originalPrice": None,
        })
    cart["updatedAt"] = utc_now_iso()


def _cart_response(state: MockState, cart: dict, message: str = "") -> dict:
    response = {"success": True, "cart": state.serialize_cart(cart)}
    if message:
        response["message"] = message
    return response


# ==================== ROUTES ====================

router = APIRouter(prefix="/api", tags=["mock-cart"])


@router.post("/auth/login")
async def login(request: LoginRequest, state: MockState = Depends(get_state)):
    user = next(
        (u for u in state.users if u["email"] == request.email and u["password"] == request.password),
        None,
    )
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = state.issue_token(user["id"])
    public_user = {k: v for k, v in user.items() if k != "password"}
    logger.info(f"Mock login for user {sanitize_id_for_logging(user['id'])}")
    return {"token": token, "user": public_user}


@router.post("/auth/register")
async def register(request: RegisterRequest, state: MockState = Depends(get_state)):
    if any(u["email"] == request.email for u in state.users):
        raise HTTPException(status_code=400, detail=ERROR_EMAIL_TAKEN)

    user = {"id": f"user_{int(time.time() * 1000)}", **request.model_dump()}
    state.users.append(user)

    token = state.issue_token(user["id"])
    public_user = {k: v for k, v in user.items() if k != "password"}
    logger.info(f"Mock registration for user {sanitize_id_for_logging(user['id'])}")
    return {"token": token, "user": public_user}


@router.get("/health")
async def health():
    return {"status": "ok", "service": "mock-cart-api"}


@router.get("/products")
async def list_products(state: MockState = Depends(get_state)):
    return [
        {**product, "price": to_wire(product["price"])}
        for product in state.products.values()
    ]


@router.put("/products/{product_id}/price")
async def reprice_product(product_id: str, request: RepriceRequest, state: MockState = Depends(get_state)):
    """Change a product's price and flag every cart line that holds it."""
    product = _get_product(state, product_id)
    new_price = to_decimal(request.price)
    product["price"] = new_price

    flagged = 0
    for cart in state.carts.values():
        for line in cart["items"]:
            if line["productId"] != product_id or line["price"] == new_price:
                continue
            if not line["priceChanged"]:
                line["originalPrice"] = line["price"]
            line["price"] = new_price
            line["priceChanged"] = True
            cart["updatedAt"] = utc_now_iso()
            flagged += 1

    return {"success": True, "product": {**product, "price": to_wire(new_price)}, "flaggedLines": flagged}


@router.get("/cart")
async def get_cart(owner: CartOwner = Depends(get_owner), state: MockState = Depends(get_state)):
    return _cart_response(state, state.cart_for(owner))


@router.post("/cart/add")
async def add_to_cart(
    request: AddToCartRequest,
    owner: CartOwner = Depends(get_owner),
    state: MockState = Depends(get_state),
):
    if request.quantity < 1:
        raise HTTPException(status_code=400, detail="quantity must be a positive integer")
    product = _get_product(state, request.productId)
    cart = state.cart_for(owner)
    _add_quantity(cart, product, request.quantity)
    return _cart_response(state, cart, "Added to cart")


@router.post("/cart/merge")
async def merge_cart(
    request: MergeCartRequest,
    owner: CartOwner = Depends(get_user_owner),
    state: MockState = Depends(get_state),
):
    """Fold guest lines into the user's cart, aggregating by product. Returns the bare cart."""
    cart = state.cart_for(owner)
    skipped = 0
    for item in request.items:
        product = state.products.get(item.productId)
        if product is None or item.quantity < 1:
            skipped += 1
            continue
        _add_quantity(cart, product, item.quantity)

    if skipped:
        logger.info(f"Merge skipped {skipped} unknown lines")
    return state.serialize_cart(cart)


@router.post("/cart/price-acceptance")
async def price_acceptance(
    request: PriceAcceptanceRequest,
    owner: CartOwner = Depends(get_user_owner),
    state: MockState = Depends(get_state),
):
    cart = state.cart_for(owner)
    line = _find_line(cart, request.itemId)

    if request.accepted:
        line["priceChanged"] = False
        line["originalPrice"] = None
    else:
        cart["items"].remove(line)
    cart["updatedAt"] = utc_now_iso()
    return _cart_response(state, cart)


@router.delete("/cart")
async def clear_cart(owner: CartOwner = Depends(get_user_owner), state: MockState = Depends(get_state)):
    cart = state.cart_for(owner)
    cart["items"] = []
    cart["updatedAt"] = utc_now_iso()
    return {"success": True, "message": "Cart cleared"}


@router.delete("/cart/{line_id}")
async def remove_line(
    line_id: str,
    owner: CartOwner = Depends(get_user_owner),
    state: MockState = Depends(get_state),
):
    cart = state.cart_for(owner)
    line = _find_line(cart, line_id)
    cart["items"].remove(line)
    cart["updatedAt"] = utc_now_iso()
    return _cart_response(state, cart, "Removed from cart")


@router.put("/cart/{line_id}")
async def update_line(
    line_id: str,
    request: UpdateQuantityRequest,
    owner: CartOwner = Depends(get_user_owner),
    state: MockState = Depends(get_state),
):
    cart = state.cart_for(owner)
    line = _find_line(cart, line_id)
    if request.quantity <= 0:
        cart["items"].remove(line)
    else:
        line["quantity"] = request.quantity
    cart["updatedAt"] = utc_now_iso()
    return _cart_response(state, cart)


def create_app(seed: bool = True) -> FastAPI:
    """Fresh mock server with its own in-memory state."""
    app = FastAPI(title="Storefront Mock Cart API")
    app.state.mock = MockState(seed=seed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
