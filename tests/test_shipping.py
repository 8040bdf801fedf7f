"""Tests for the shipping fee calculator and price reconciliation."""

import itertools

import pytest

from checkout import pricing
from checkout.config import Settings
from checkout.domain import CartLine, ShippingPayer, ValidatedLine
from checkout.shipping import (
    DEFAULT_FEE,
    FeeTable,
    STANDARD_FEE_TABLE,
    buyer_pays_required,
    normalize_region,
    shipping_fee,
)
from tests.support import product


class TestNormalizeRegion:
    @pytest.mark.parametrize(
        "raw",
        ["東京都", "東京", "Tokyo", "tokyo-to", " TOKYO ", "Tokyo Prefecture"],
    )
    def test_spellings_of_tokyo(self, raw):
        assert normalize_region(raw) == "tokyo"

    def test_unknown_region_passes_through_lowercased(self):
        assert normalize_region("Atlantis") == "atlantis"


class TestShippingFee:
    """Fee depends on region and on whether any item is buyer-paid."""

    @pytest.mark.parametrize(
        ("region", "fee"),
        [("東京都", 700), ("大阪府", 700), ("北海道", 1200), ("沖縄県", 1500)],
    )
    def test_region_fees(self, region, fee):
        assert shipping_fee(region, True) == fee

    def test_unlisted_region_uses_default(self):
        assert shipping_fee("Atlantis", True) == DEFAULT_FEE == 800

    @pytest.mark.parametrize("region", ["東京都", "北海道", "沖縄県", "Atlantis", ""])
    def test_no_buyer_paid_item_is_free_everywhere(self, region):
        assert shipping_fee(region, False) == 0

    @pytest.mark.parametrize("region", [None, "", "   "])
    def test_blank_region_is_free(self, region):
        assert shipping_fee(region, True) == 0

    def test_one_buyer_paid_item_is_enough(self):
        products = [product("a", 100), product("b", 100, ShippingPayer.BUYER)]

        assert buyer_pays_required(products) is True
        assert buyer_pays_required(products[:1]) is False


class TestFeeTable:
    def test_overrides_from_settings(self):
        settings = Settings(shipping_fee_overrides={"東京都": 500}, shipping_default_fee=900)

        table = FeeTable.from_settings(settings)

        assert table.lookup("Tokyo") == 500
        assert table.lookup("北海道") == 1200
        assert table.lookup("Atlantis") == 900

    def test_negative_fee_rejected(self):
        with pytest.raises(ValueError):
            FeeTable.of({"tokyo": -1})

    def test_standard_table_is_the_default(self):
        assert STANDARD_FEE_TABLE.lookup("tokyo") == 700


class TestReconcile:
    """total == subtotal + fee, with server prices only."""

    def _lines(self) -> list[ValidatedLine]:
        return [
            ValidatedLine(CartLine("a", 2), product("a", 1000)),
            ValidatedLine(CartLine("b"), product("b", 2500, ShippingPayer.BUYER)),
            ValidatedLine(CartLine("c"), product("c", 400)),
        ]

    def test_breakdown_adds_up(self):
        breakdown = pricing.reconcile(self._lines(), "北海道", STANDARD_FEE_TABLE)

        assert breakdown.subtotal == 2 * 1000 + 2500 + 400
        assert breakdown.shipping_fee == 1200
        assert breakdown.total == breakdown.subtotal + breakdown.shipping_fee

    def test_line_order_never_changes_the_fee(self):
        fees = {
            pricing.reconcile(lines, "東京都", STANDARD_FEE_TABLE).shipping_fee
            for lines in itertools.permutations(self._lines())
        }

        assert fees == {700}
