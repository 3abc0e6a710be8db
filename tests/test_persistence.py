"""
Tests for cart persistence on device storage
"""

import json
import re

import pytest

from storefront.cart import Cart, CartLine, CartPersistence, InMemoryStorage, ProductSnapshot, StorageKeys
from storefront.cart.persistence import generate_session_id, size_of


def _line(i: int, name: str = "Item") -> CartLine:
    return CartLine(
        id=f"l{i}",
        product_id=f"p{i}",
        quantity=i + 1,
        price=f"{i}.50",
        product=ProductSnapshot(id=f"p{i}", name=name, image="https://cdn/x.jpg", current_price=i, slug=f"item-{i}"),
    )


class TestSaveLoad:

    @pytest.mark.asyncio
    async def test_roundtrip_keeps_line_identity(self, storage):
        """Lines survive save/load on id, productId, quantity and price."""
        persistence = CartPersistence(storage)
        cart = Cart(id="c1", items=[_line(1), _line(2), _line(3)])

        await persistence.save(cart)
        loaded = await persistence.load()

        assert [(l.id, l.product_id, l.quantity, l.price) for l in loaded.items] == [
            (l.id, l.product_id, l.quantity, l.price) for l in cart.items
        ]

    @pytest.mark.asyncio
    async def test_saved_payload_has_no_images(self, storage):
        persistence = CartPersistence(storage)
        await persistence.save(Cart(items=[_line(1)]))

        stored = json.loads(await storage.get(StorageKeys.CART))
        assert "image" not in stored["items"][0]["product"]
        assert "images" not in stored["items"][0]["product"]

    @pytest.mark.asyncio
    async def test_load_missing_key_returns_none(self, storage):
        assert await CartPersistence(storage).load() is None

    @pytest.mark.asyncio
    async def test_load_corrupt_payload_returns_none(self):
        storage = InMemoryStorage(initial={StorageKeys.CART: "{not json"})
        assert await CartPersistence(storage).load() is None

    @pytest.mark.asyncio
    async def test_load_wrong_shape_returns_none(self):
        storage = InMemoryStorage(initial={StorageKeys.CART: json.dumps({"items": [{"id": "l1"}]})})
        assert await CartPersistence(storage).load() is None

    @pytest.mark.asyncio
    async def test_load_drops_lines_below_one(self):
        """Zero or negative quantities in storage never reach the cart."""
        stored = {
            "id": "c1",
            "items": [
                {"id": "l1", "productId": "p1", "quantity": 0, "price": "5"},
                {"id": "l2", "productId": "p2", "quantity": -2, "price": "5"},
                {"id": "l3", "productId": "p3", "quantity": 1, "price": "5"},
            ],
        }
        storage = InMemoryStorage(initial={StorageKeys.CART: json.dumps(stored)})

        loaded = await CartPersistence(storage).load()

        assert [line.id for line in loaded.items] == ["l3"]


class TestOverflow:

    @pytest.mark.asyncio
    async def test_oversized_cart_keeps_first_five_lines(self, storage):
        """Over 1024 KB only the oldest five lines are written."""
        big_name = "x" * (60 * 1024)
        cart = Cart(items=[_line(i, name=big_name) for i in range(20)])
        assert size_of(json.dumps(cart.to_dict())) > 1024

        await CartPersistence(storage).save(cart)
        loaded = await CartPersistence(storage).load()

        assert [line.id for line in loaded.items] == ["l0", "l1", "l2", "l3", "l4"]

    @pytest.mark.asyncio
    async def test_quota_error_clears_cart_and_session(self):
        storage = InMemoryStorage(
            quota_bytes=256,
            initial={StorageKeys.CART: "{}", StorageKeys.SESSION_ID: "session-1-0.5"},
        )
        cart = Cart(items=[_line(i) for i in range(10)])

        await CartPersistence(storage).save(cart)

        assert StorageKeys.CART not in storage
        assert StorageKeys.SESSION_ID not in storage

    @pytest.mark.asyncio
    async def test_clear_if_oversized(self):
        storage = InMemoryStorage(initial={StorageKeys.CART: "x" * (600 * 1024)})

        cleared = await CartPersistence(storage).clear_if_oversized()

        assert cleared is True
        assert StorageKeys.CART not in storage

    @pytest.mark.asyncio
    async def test_clear_if_oversized_keeps_small_entries(self, storage):
        persistence = CartPersistence(storage)
        await persistence.save(Cart(items=[_line(1)]))

        assert await persistence.clear_if_oversized() is False
        assert StorageKeys.CART in storage


class TestSessionId:

    def test_format(self):
        assert re.match(r"^session-\d+-[0-9.e-]+$", generate_session_id())

    @pytest.mark.asyncio
    async def test_created_once_then_reused(self, storage):
        persistence = CartPersistence(storage)

        first = await persistence.load_or_create_session_id()
        second = await persistence.load_or_create_session_id()

        assert first == second
        assert await storage.get(StorageKeys.SESSION_ID) == first

    def test_size_of_counts_utf8_bytes(self):
        assert size_of("a" * 1024) == 1
        assert size_of("é" * 512) == 1
