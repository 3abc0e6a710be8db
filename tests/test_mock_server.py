"""
Tests for the mock cart API
"""

import httpx
import pytest

from conftest import CANONICAL_ID


@pytest.fixture
def api(mock_app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=mock_app), base_url="http://testserver/api")


@pytest.mark.asyncio
async def test_login(api):
    response = await api.post("/auth/login", json={"email": "ahmed@example.com", "password": "password123"})

    assert response.status_code == 200
    data = response.json()
    assert data["token"].startswith("token_1_")
    assert "password" not in data["user"]


@pytest.mark.asyncio
async def test_login_wrong_password(api):
    response = await api.post("/auth/login", json={"email": "ahmed@example.com", "password": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_seed_products_have_object_ids(api):
    products = (await api.get("/products")).json()

    assert len(products) == 3
    assert all(len(p["_id"]) == 24 for p in products)


@pytest.mark.asyncio
async def test_cart_requires_identity(api):
    response = await api.get("/cart")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_guest_add_validates_product_id(api):
    headers = {"X-Session-ID": "session-1-0.5"}

    bad = await api.post("/cart/add", json={"productId": "1", "quantity": 1}, headers=headers)
    missing = await api.post("/cart/add", json={"productId": CANONICAL_ID, "quantity": 1}, headers=headers)

    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid product id"
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_guest_cannot_merge(api):
    response = await api.post("/cart/merge", json={"items": []}, headers={"X-Session-ID": "s"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_clear_returns_acknowledgement_only(api, user, product):
    headers = {"Authorization": f"Bearer {user.get_token()}"}
    await api.post("/cart/add", json={"productId": product["_id"], "quantity": 2}, headers=headers)

    response = await api.delete("/cart", headers=headers)

    assert response.json() == {"success": True, "message": "Cart cleared"}
    assert (await api.get("/cart", headers=headers)).json()["cart"]["items"] == []


@pytest.mark.asyncio
async def test_health(api):
    response = await api.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_register_then_use_cart(api):
    response = await api.post(
        "/auth/register",
        json={"email": "sara@example.com", "password": "secret", "firstName": "Sara"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["id"].startswith("user_")
    assert "password" not in data["user"]

    cart = await api.get("/cart", headers={"Authorization": f"Bearer {data['token']}"})
    assert cart.json()["cart"]["items"] == []


@pytest.mark.asyncio
async def test_register_duplicate_email(api):
    response = await api.post("/auth/register", json={"email": "ahmed@example.com", "password": "x"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"
