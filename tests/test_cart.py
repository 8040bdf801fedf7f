"""Tests for the Cart value object and MemoryCartStore."""

import pytest

from checkout.cart import Cart, MemoryCartStore
from checkout.domain import CartLine, CheckoutError


class TestCart:
    """Cart mutations return new carts and merge duplicates."""

    def test_duplicates_are_merged_in_first_seen_order(self):
        cart = Cart.empty("buyer-1").add("rod").add("reel", 2).add("rod")

        assert cart.lines == (CartLine("rod", 2), CartLine("reel", 2))

    def test_from_lines_merges(self):
        cart = Cart.from_lines([CartLine("a"), CartLine("b"), CartLine("a", 3)])

        assert cart.lines == (CartLine("a", 4), CartLine("b", 1))

    def test_original_is_untouched(self):
        cart = Cart.empty("buyer-1")
        cart.add("rod")

        assert cart.is_empty

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_invalid_quantity_rejected(self, quantity):
        with pytest.raises(CheckoutError) as exc:
            Cart.empty().add("rod", quantity)

        assert exc.value.code == "INVALID_QUANTITY"

    def test_set_quantity_and_remove(self):
        cart = Cart.empty().add("a").add("b").add("c")

        cart = cart.set_quantity("b", 5).remove("a")

        assert cart.lines == (CartLine("b", 5), CartLine("c", 1))
        assert cart.quantity_of("a") == 0

    def test_remove_many_and_clear(self):
        cart = Cart.empty("buyer-1").add("a").add("b").add("c")

        assert cart.remove_many(["a", "c"]).product_ids == ("b",)
        assert cart.clear() == Cart.empty("buyer-1")

    def test_merge_guest_cart(self):
        guest = Cart.empty().add("a").add("b")
        own = Cart.empty("buyer-1").add("a", 2)

        merged = own.merge(guest)

        assert merged.owner_id == "buyer-1"
        assert merged.lines == (CartLine("a", 3), CartLine("b", 1))


class TestCartOwnership:
    """A cart is only ever handed to its own buyer."""

    def test_anonymous_cart_is_adopted(self):
        cart = Cart.empty().add("a").for_owner("buyer-1")

        assert cart.owner_id == "buyer-1"
        assert cart.product_ids == ("a",)

    def test_foreign_cart_is_discarded(self):
        cart = Cart.empty("buyer-1").add("a").for_owner("buyer-2")

        assert cart == Cart.empty("buyer-2")

    def test_same_owner_is_kept(self):
        cart = Cart.empty("buyer-1").add("a")

        assert cart.for_owner("buyer-1") is cart


class TestMemoryCartStore:
    @pytest.mark.asyncio
    async def test_unknown_buyer_has_empty_cart(self):
        store = MemoryCartStore()

        assert await store.load("nobody") == Cart.empty("nobody")

    @pytest.mark.asyncio
    async def test_remove_products_keeps_the_rest(self):
        store = MemoryCartStore()
        await store.save(Cart.empty("buyer-1").add("a").add("b").add("c"))

        cart = await store.remove_products("buyer-1", ["a", "b"])

        assert cart.product_ids == ("c",)
        assert (await store.load("buyer-1")).product_ids == ("c",)

    @pytest.mark.asyncio
    async def test_anonymous_cart_cannot_be_saved(self):
        with pytest.raises(ValueError):
            await MemoryCartStore().save(Cart.empty())
