"""Tests for the price reconciliation graph."""

import pytest

from checkout.domain import Address, CartLine, CheckoutError, PaymentMethod, ProductStatus
from checkout.quote import build_quote, preview_shipping
from tests.support import BUYER, HOKKAIDO, TOKYO, product, quote_request


class TestBuildQuote:
    @pytest.mark.asyncio
    async def test_tokyo_buyer_paid_item(self, context):
        """A (¥3,000, buyer pays) + B (¥5,000, seller pays), Tokyo → 8,000 + 700."""
        quote = await build_quote(quote_request(), context)

        assert quote.breakdown.subtotal == 8000
        assert quote.breakdown.shipping_fee == 700
        assert quote.total == 8700
        assert quote.missing == ()
        assert not quote.mismatch

    @pytest.mark.asyncio
    async def test_deleted_buyer_paid_item(self, context, catalog):
        """Same cart with A deleted → B only, 5,000 + 0."""
        catalog.delete("A")

        quote = await build_quote(quote_request(), context)

        assert [v.product.id for v in quote.lines] == ["B"]
        assert quote.breakdown.subtotal == 5000
        assert quote.breakdown.shipping_fee == 0
        assert quote.total == 5000
        assert quote.missing == ("A",)

    @pytest.mark.asyncio
    async def test_client_total_is_reported_not_used(self, context):
        quote = await build_quote(quote_request(proposed_total=8000), context)

        assert quote.mismatch is True
        assert quote.total == 8700

    @pytest.mark.asyncio
    async def test_server_prices_win(self, context, catalog):
        catalog.put(product("B", 4500, seller="seller-2"))

        quote = await build_quote(quote_request(), context)

        assert quote.breakdown.subtotal == 7500

    @pytest.mark.asyncio
    async def test_quantities_multiply(self, context):
        quote = await build_quote(quote_request(lines=[CartLine("B", 2)]), context)

        assert quote.breakdown.subtotal == 10000

    @pytest.mark.asyncio
    async def test_saved_address_is_used_when_none_given(self, context, profiles):
        await profiles.save_address(BUYER, HOKKAIDO)

        quote = await build_quote(quote_request(address=None), context)

        assert quote.address == HOKKAIDO
        assert quote.breakdown.shipping_fee == 1200

    @pytest.mark.asyncio
    async def test_no_address_yet_means_no_fee(self, context):
        quote = await build_quote(quote_request(address=None), context)

        assert quote.address is None
        assert quote.breakdown.shipping_fee == 0


class TestQuoteRefusals:
    @pytest.mark.asyncio
    async def test_empty_cart(self, context):
        with pytest.raises(CheckoutError) as exc:
            await build_quote(quote_request(lines=[]), context)

        assert exc.value.code == "EMPTY_CART"

    @pytest.mark.asyncio
    async def test_everything_deleted(self, context, catalog):
        catalog.delete("A")
        catalog.delete("B")

        with pytest.raises(CheckoutError) as exc:
            await build_quote(quote_request(), context)

        assert exc.value.code == "PRODUCT_NOT_FOUND"
        assert exc.value.details["product_ids"] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_everything_sold(self, context, catalog):
        catalog.put(product("A", 3000, status=ProductStatus.SOLD))
        catalog.delete("B")

        with pytest.raises(CheckoutError) as exc:
            await build_quote(quote_request(), context)

        assert exc.value.code == "ITEM_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_incomplete_address(self, context):
        address = Address(postal_code="100-0001", region="東京都", city="", street=" ")

        with pytest.raises(CheckoutError) as exc:
            await build_quote(quote_request(address=address), context)

        assert exc.value.code == "ADDRESS_INCOMPLETE"
        assert exc.value.details["missing"] == ["city", "street"]


class TestFingerprint:
    @pytest.mark.asyncio
    async def test_stable_for_the_same_checkout(self, context):
        first = await build_quote(quote_request(), context)
        second = await build_quote(quote_request(lines=[CartLine("B"), CartLine("A")]), context)

        assert first.fingerprint == second.fingerprint

    @pytest.mark.asyncio
    async def test_changes_with_region_and_method(self, context):
        base = await build_quote(quote_request(), context)
        moved = await build_quote(quote_request(address=HOKKAIDO), context)
        paypay = await build_quote(quote_request(payment_method=PaymentMethod.PAYPAY), context)

        assert base.fingerprint != moved.fingerprint
        assert base.fingerprint != paypay.fingerprint
        assert base.total == paypay.total


class TestPreviewShipping:
    @pytest.mark.asyncio
    async def test_fee_only(self, context):
        assert await preview_shipping(quote_request(address=TOKYO), context) == 700
        assert await preview_shipping(quote_request(lines=[CartLine("B")]), context) == 0
