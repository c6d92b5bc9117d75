"""Cart aggregation: line matching, pricing, quantity changes, totals."""

from decimal import Decimal

import pytest

from common.exceptions import ValidationError
from modules.cart.service import cart_service


class TestAddLine:
    def test_new_line_snapshots_product_price(self, db, make_product, make_cart):
        product = make_product(price="1000", stock_quantity=7)
        cart = make_cart((product, 2))

        assert len(cart.lines) == 1
        line = cart.lines[0]
        assert line.unit_price == Decimal("1000.00")
        assert line.quantity == 2
        assert line.max_quantity == 7
        assert line.display_name == "Oud Candle"

    def test_sale_price_used_while_on_sale(self, db, make_product, make_cart):
        product = make_product(price="1000", sale_price=Decimal("800"), is_on_sale=True)
        cart = make_cart((product, 1))

        assert cart.lines[0].unit_price == Decimal("800.00")

    def test_sale_price_ignored_when_not_on_sale(self, db, make_product, make_cart):
        product = make_product(price="1000", sale_price=Decimal("800"), is_on_sale=False)
        cart = make_cart((product, 1))

        assert cart.lines[0].unit_price == Decimal("1000.00")

    def test_variant_price_override_added_to_current_price(self, db, make_product, make_variant, make_cart):
        product = make_product(price="1000", sale_price=Decimal("900"), is_on_sale=True)
        variant = make_variant(product, name="Large", price_override="250", stock_quantity=3)
        cart = make_cart((product, 1, variant))

        line = cart.lines[0]
        assert line.unit_price == Decimal("1150.00")
        assert line.max_quantity == 3
        assert line.display_name == "Oud Candle (Large)"

    def test_same_product_merges_into_one_line(self, db, make_product, make_cart):
        product = make_product()
        cart = make_cart((product, 1), (product, 2))

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3

    def test_different_variants_stay_separate(self, db, make_product, make_variant, make_cart):
        product = make_product()
        small = make_variant(product, name="Small")
        large = make_variant(product, name="Large", price_override="200")
        cart = make_cart((product, 1, small), (product, 1, large), (product, 1, small))

        assert len(cart.lines) == 2
        by_variant = {line.variant_id: line for line in cart.lines}
        assert by_variant[small.id].quantity == 2
        assert by_variant[large.id].quantity == 1

    def test_plain_product_does_not_merge_with_variant_line(self, db, make_product, make_variant, make_cart):
        product = make_product()
        variant = make_variant(product)
        cart = make_cart((product, 1, variant), (product, 1))

        assert len(cart.lines) == 2

    def test_max_quantity_defaults_when_no_stock_reported(self, db, make_product, make_cart):
        product = make_product(stock_quantity=0)
        cart = make_cart((product, 1))

        assert cart.lines[0].max_quantity == 100

    def test_quantity_below_one_rejected(self, db, make_product, make_cart):
        product = make_product()
        cart = make_cart()

        with pytest.raises(ValidationError):
            cart_service.add_line(db, cart, product, 0)
        assert cart.lines == []


class TestUpdateQuantity:
    def test_sets_quantity(self, db, make_product, make_cart):
        product = make_product()
        cart = make_cart((product, 1))
        line_id = cart.lines[0].id

        line = cart_service.update_quantity(db, cart, line_id, 5)

        assert line.quantity == 5

    def test_zero_removes_line(self, db, make_product, make_cart):
        product = make_product()
        cart = make_cart((product, 2))
        line_id = cart.lines[0].id

        result = cart_service.update_quantity(db, cart, line_id, 0)

        assert result is None
        assert cart.lines == []

    def test_unknown_line_is_noop(self, db, make_product, make_cart):
        product = make_product()
        cart = make_cart((product, 2))

        assert cart_service.update_quantity(db, cart, 9999, 3) is None
        assert cart.lines[0].quantity == 2


class TestTotals:
    def test_subtotal_and_count(self, db, make_product, make_cart):
        candle = make_product(name="Candle", price="1000")
        soap = make_product(name="Soap", price="249.50")
        cart = make_cart((candle, 2), (soap, 3))

        summary = cart_service.summarize(cart.lines)

        assert summary.subtotal == Decimal("2748.50")
        assert summary.count == 5
        assert not summary.is_empty

    def test_empty_cart_summary(self, db):
        summary = cart_service.get_summary(db, "no-such-session")

        assert summary.is_empty
        assert summary.subtotal == Decimal("0.00")
        assert summary.count == 0

    def test_clear_cart(self, db, make_product, make_cart):
        product = make_product()
        cart = make_cart((product, 2))

        cart_service.clear_cart(db, cart)

        assert cart_service.get_summary(db, "test-session").is_empty
